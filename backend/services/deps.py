from fastapi import Request

from services.workspace import TableWorkspace


def get_workspace(request: Request) -> TableWorkspace:
    return request.app.state.workspace
