from flask import jsonify


def ok(message: str, data=None, status: int = 200):
    """Success envelope shared by every JSON route."""
    return jsonify({"success": True, "message": message, "data": data}), status
