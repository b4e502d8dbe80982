# coding: utf8
from functools import wraps

from flask import request
from jsonschema import FormatChecker, validate
from jsonschema.exceptions import ValidationError

from carrental.errors.exceptions import Forbidden, Unauthorized
from carrental.lib.response import Response
from carrental.services.auth import AuthService


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_user = AuthService.get_current_identity()
        if not current_user:
            raise Unauthorized(message="Please log in to continue")
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_user = AuthService.get_current_identity()
        if not current_user:
            raise Unauthorized(message="Please log in to continue")
        if not current_user.is_admin:
            raise Forbidden(message="Admin access required")
        return fn(*args, **kwargs)

    return wrapper


def parameters(**schema):
    """Validate query string and JSON/form body against a JSON Schema.

    Only keys declared in ``properties`` are passed on, as the last
    positional argument of the view method.
    """

    def decorated(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            req_args = request.args.to_dict()
            if request.method in ("POST", "PUT", "PATCH", "DELETE"):
                if request.mimetype == "application/json":
                    body = request.get_json(silent=True)
                    if not isinstance(body, dict):
                        return Response(
                            success=False,
                            message="Request body must be a JSON object",
                            status=400,
                        ).to_dict()
                    req_args.update(body)
                elif request.mimetype == "multipart/form-data":
                    req_args.update(request.form.to_dict())

            req_args = {
                k: v for k, v in req_args.items() if k in schema["properties"].keys()
            }

            for field in schema.get("required", []):
                if field not in req_args or req_args[field] in (None, ""):
                    field_name = schema["properties"].get(field, {}).get("name", field)
                    return Response(
                        success=False,
                        message=f"{field_name} is required",
                        status=400,
                        kind="VALIDATION",
                        detail={"field": field, "reason": f"{field_name} is required"},
                    ).to_dict()

            try:
                validate(
                    instance=req_args, schema=schema, format_checker=FormatChecker()
                )
            except ValidationError as exp:
                path = list(exp.absolute_path)
                field = ".".join(str(part) for part in path) or "body"
                return Response(
                    success=False,
                    message=f"Field '{field}' is not valid: {exp.message}",
                    status=400,
                    kind="VALIDATION",
                    detail={"field": field, "reason": exp.message},
                ).to_dict()

            new_args = args + (req_args,)
            return func(*new_args, **kwargs)

        return wrapper

    return decorated
