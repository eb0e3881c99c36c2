from flask import current_app, jsonify, request, url_for


def error_response(message, code=400):
    return jsonify({"status": "error", "message": message}), code


def created_response(payload, endpoint, **values):
    """201 with a Location header pointing at the resource's GET endpoint."""
    response = jsonify(payload)
    response.status_code = 201
    response.headers["Location"] = url_for(endpoint, **values)
    return response


def no_content():
    return "", 204


def json_body():
    """Request JSON as a dict, or None when the body is missing or not an object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        current_app.logger.info("Rejected non-object JSON body on %s", request.path)
        return None
    return data
