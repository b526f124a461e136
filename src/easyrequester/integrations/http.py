from http import HTTPStatus


def reason_phrase(code: int) -> str:
    """Returns the standard reason phrase of an HTTP status code, or an empty
    string for codes without one."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""
