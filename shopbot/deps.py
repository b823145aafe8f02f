from fastapi import Request

from shopbot.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
