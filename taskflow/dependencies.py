from fastapi import Request

from .store import TaskStore


def get_store(request: Request) -> TaskStore:
    return request.app.state.store
