# gigshift_api/common/http.py
from flask import Response, jsonify


def ok(data=None, status=200, **meta):
    body = {"success": True, "data": data}
    if meta:
        body["meta"] = meta
    return jsonify(body), status


def fail(message="Bad Request", status=400, code=None, detail=None):
    error = {"message": message}
    if code:
        error["code"] = code
    if detail:
        error["detail"] = detail
    return jsonify({"success": False, "error": error}), status


def csv_download(body: str, filename: str) -> Response:
    """Raw CSV attachment; the JSON envelope does not apply to exports."""
    return Response(body, mimetype="text/csv",
                    headers={"Content-Disposition": f"attachment; filename={filename}"})
