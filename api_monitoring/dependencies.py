from typing import Annotated

from fastapi import Depends, Request

from .config import Settings


def get_app_settings(request: Request) -> Settings:
    """settings the application was bootstrapped with"""
    return request.app.state.settings


def get_uptime(request: Request) -> float:
    """seconds since the application was bootstrapped"""
    return request.app.state.bootstrap.uptime()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
UptimeDep = Annotated[float, Depends(get_uptime)]
