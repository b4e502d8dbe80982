import hashlib
import hmac

import requests
from flask import current_app

from carrental.enums.errors import ErrorKind
from carrental.lib.logger import logger
from carrental.lib.result import Result


def _gateway_message(body, default):
    message = body.get("message") if isinstance(body, dict) else None
    if not message:
        return default
    if isinstance(message, dict):
        # field validation errors come back as {"field": ["reason", ...]}
        return "; ".join(
            f"{field}: {', '.join(reasons) if isinstance(reasons, list) else reasons}"
            for field, reasons in message.items()
        )
    return str(message)


class ChapaClient:
    """Hosted-checkout gateway client.

    Every call returns a ``Result``. Both the value and the failure detail
    carry ``status_code`` and ``raw`` so the caller can keep an audit trail.
    """

    def __init__(self, secret_key, base_url, timeout=30):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls):
        config = current_app.config
        return cls(
            secret_key=config["CHAPA_SECRET_KEY"],
            base_url=config["CHAPA_BASE_URL"],
            timeout=config["CHAPA_TIMEOUT"],
        )

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _send(self, method, path, payload=None):
        url = f"{self.base_url}{path}"
        try:
            res = requests.request(
                method, url, json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.warning(f"Chapa {method} {path} timed out after {self.timeout}s")
            return Result.failure(
                ErrorKind.GATEWAY_UNAVAILABLE,
                {"message": f"Payment gateway timed out: {e}", "status_code": None, "raw": None},
            )
        except requests.RequestException as e:
            logger.warning(f"Chapa {method} {path} connection error: {e}")
            return Result.failure(
                ErrorKind.GATEWAY_UNAVAILABLE,
                {"message": f"Payment gateway unreachable: {e}", "status_code": None, "raw": None},
            )

        try:
            body = res.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return Result.failure(
                ErrorKind.GATEWAY_UNAVAILABLE,
                {
                    "message": "Malformed response from payment gateway",
                    "status_code": res.status_code,
                    "raw": {"text": res.text[:1000]},
                },
            )

        if res.status_code >= 500:
            return Result.failure(
                ErrorKind.GATEWAY_UNAVAILABLE,
                {
                    "message": _gateway_message(body, "Payment gateway error"),
                    "status_code": res.status_code,
                    "raw": body,
                },
            )
        return Result.success({"status_code": res.status_code, "raw": body})

    def initialize_transaction(self, payload):
        result = self._send("POST", "/transaction/initialize", payload)
        if not result.ok:
            return result

        status_code = result.value["status_code"]
        body = result.value["raw"]
        if status_code >= 400 or body.get("status") != "success":
            return Result.failure(
                ErrorKind.GATEWAY_REJECTED,
                {
                    "message": _gateway_message(body, "Payment gateway rejected the request"),
                    "status_code": status_code,
                    "raw": body,
                },
            )

        checkout_url = (body.get("data") or {}).get("checkout_url")
        if not checkout_url:
            return Result.failure(
                ErrorKind.GATEWAY_UNAVAILABLE,
                {
                    "message": "Payment gateway response has no checkout_url",
                    "status_code": status_code,
                    "raw": body,
                },
            )

        return Result.success(
            {"checkout_url": checkout_url, "status_code": status_code, "raw": body}
        )

    def verify_transaction(self, ref_id):
        """Ask the gateway for the authoritative state of a transaction.

        Any well-formed answer below 500 is a success of the call itself; the
        caller decides whether the payment went through.
        """
        result = self._send("GET", f"/transaction/verify/{ref_id}")
        if not result.ok:
            return result

        body = result.value["raw"]
        return Result.success(
            {
                "status_code": result.value["status_code"],
                "raw": body,
                "status": body.get("status"),
                "data": body.get("data") if isinstance(body.get("data"), dict) else {},
                "message": _gateway_message(body, ""),
            }
        )


def verify_webhook_signature(secret, raw_body, signature):
    if not secret or not signature:
        return False
    expected = hmac.new(
        secret.encode("utf-8"), raw_body, hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature.strip())
