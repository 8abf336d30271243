from fastapi import HTTPException


class NotFound(HTTPException):
    def __init__(self, detail: str = 'Not found'):
        super().__init__(status_code=404, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = 'Forbidden'):
        super().__init__(status_code=403, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = 'Authentication required'):
        super().__init__(status_code=401, detail=detail, headers={'WWW-Authenticate': 'Bearer'})


class BadRequest(HTTPException):
    def __init__(self, detail: str = 'Bad request'):
        super().__init__(status_code=400, detail=detail)
