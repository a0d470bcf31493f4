"""
=============================================================================
CHIRP VALIDATION ENDPOINT
=============================================================================

    POST /api/validate_chirp
    {"body": "What a kerfuffle this is"}

    HTTP/1.1 200 OK
    Content-Type: application/json

    {"cleaned_body": "What a **** this is"}

Rejections use the same content type:

    400  {"error": "Invalid JSON"}
    400  {"error": "Chirp is too long"}

=============================================================================
"""

from ..chirps.validator import validate_chirp
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder


def validate_chirp_handler(request: HTTPRequest) -> HTTPResponse:
    result = validate_chirp(request.body)
    return (ResponseBuilder()
        .status(result.status)
        .json(result.to_dict())
        .build())
