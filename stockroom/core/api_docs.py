from stockroom.schemas.common import ErrorOut


# Example error code/message per status, picked from the inventory errors
# most likely to be seen behind that status.
_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("insufficient_stock", "Insufficient stock for product: on hand 15, requested 20"),
    404: ("unknown_product", "Product not found"),
    409: ("invalid_transition", "Cannot cancel a document in status 'validated'"),
    422: ("validation_error", "Validation failed"),
    500: ("internal_error", "Internal server error"),
}


def error_responses(*status_codes: int, path: str = "/receipts") -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": path,
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
