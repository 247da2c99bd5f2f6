"""
SiteCMS Backend — Request Payload Reader
==========================================

What:  Turns a JSON, multipart or urlencoded request body into plain fields
       plus file parts grouped by form field.
Why:   The same endpoints accept JSON bodies (admin scripts) and forms with
       files (the website's admin panel).
Who:   Resource and ServicePage route handlers.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from starlette.datastructures import UploadFile
from starlette.requests import Request

from sitecms.exceptions import ValidationError

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


@dataclass
class RequestPayload:
    fields: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, List[UploadFile]] = field(default_factory=dict)

    def files_for(self, name: str) -> List[UploadFile]:
        return self.files.get(name, [])


async def read_payload(request: Request) -> RequestPayload:
    """
    Raises:
        ValidationError: a JSON body that does not decode to an object.
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        payload = RequestPayload()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                # Browsers send an unnamed empty part for untouched file inputs
                if value.filename:
                    payload.files.setdefault(key, []).append(value)
            else:
                payload.fields[key] = value
        return payload

    body = await request.body()
    if not body.strip():
        return RequestPayload()
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationError(message="Request body is not valid JSON.")
    if not isinstance(data, dict):
        raise ValidationError(message="Request body must be a JSON object.")
    return RequestPayload(fields=data)
