"""API and dashboard routers."""

from fastapi import Request

from cardbill.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
