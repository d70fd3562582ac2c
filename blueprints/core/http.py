from __future__ import annotations
from typing import Any, Dict, List

from flask import jsonify
from pydantic import BaseModel, ValidationError

def ok(data: Any, status: int = 200):
    return jsonify(data), status

def created(location: str, data: Any):
    resp = jsonify(data)
    resp.status_code = 201
    resp.headers["Location"] = location
    return resp

def error(msg: str, status: int = 400, code: str | None = None, field: str | None = None, detail: Any = None):
    payload: Dict[str, Any] = {"error": msg}
    if code: payload["code"] = code
    if field: payload["field"] = field
    if detail is not None: payload["detail"] = detail
    return jsonify(payload), status

def pydantic_errors_safe(ve: ValidationError) -> List[dict]:
    errs = ve.errors(include_url=False)
    for e in errs:
        # ctx может содержать исключения и Decimal, в JSON их не отдать
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        if "input" in e:
            e["input"] = str(e["input"])
    return errs

def row_to_dict(row, fields: List[str]) -> Dict[str, Any]:
    return {f: getattr(row, f) for f in fields}

def dump(schema: type[BaseModel], row, fields: List[str]) -> dict:
    return schema.model_validate(row_to_dict(row, fields)).model_dump(mode="json")

def apply_patch(row, patch: BaseModel) -> None:
    """Частичное обновление: только явно переданные поля."""
    for key, value in patch.model_dump(exclude_unset=True).items():
        setattr(row, key, value)
