# coding: utf8
from werkzeug.exceptions import HTTPException

from carrental.errors.exceptions import ApiError
from carrental.lib.logger import logger


def api_error_handler(error):
    if isinstance(error, ApiError):
        if error.status >= 500:
            logger.error(f"[{error.kind.value}] {error.message}")
        return error.to_dict(), error.status

    if isinstance(error, HTTPException):
        return {"success": False, "error": error.description}, error.code

    logger.exception(f"Unhandled error: {error}")
    return {"success": False, "error": "Internal server error"}, 500
