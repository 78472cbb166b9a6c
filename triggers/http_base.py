"""
HTTP Trigger Base Class.

Abstract base class for all Azure Functions HTTP triggers providing consistent
infrastructure patterns for request/response handling.

Specialized Trigger Types:
    BaseHttpTrigger: Generic HTTP endpoint
    ProductTrigger: Endpoints acting on one product for the signed-in user

Exports:
    BaseHttpTrigger: Base class for HTTP triggers
    ProductTrigger: Base class for product revision endpoints
    AuthenticationRequired: Raised when no user identity reached the function
    USER_ID_HEADER: Header carrying the authenticated user id
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Tuple, Union
import uuid
import json
import traceback
from datetime import datetime, timezone

import azure.functions as func

from util_logger import LoggerFactory, ComponentType
from core.errors import create_error_response, get_http_status_code
from exceptions import BusinessLogicError, ValidationError


# Set by the App Service authentication layer in front of the function app
USER_ID_HEADER = "X-MS-CLIENT-PRINCIPAL-ID"

ResponseData = Union[Dict[str, Any], Tuple[Dict[str, Any], int]]


class AuthenticationRequired(Exception):
    """No authenticated user on the request (401)."""
    pass


class BaseHttpTrigger(ABC):
    """
    Abstract base class for Azure Functions HTTP triggers.

    Provides consistent infrastructure for HTTP request/response handling,
    parameter extraction, error handling, and logging patterns.
    """

    def __init__(self, trigger_name: str):
        """
        Initialize HTTP trigger with name for logging context.

        Args:
            trigger_name: Name of the trigger for logging (e.g., "regenerate_view")
        """
        self.trigger_name = trigger_name
        self.logger = LoggerFactory.create_logger(ComponentType.TRIGGER, f"HttpTrigger.{trigger_name}")

    # ========================================================================
    # ABSTRACT METHODS - Must be implemented by concrete triggers
    # ========================================================================

    @abstractmethod
    def process_request(self, req: func.HttpRequest, request_id: str) -> ResponseData:
        """
        Process the HTTP request and return response data.

        Args:
            req: Azure Functions HTTP request object
            request_id: Correlation id for this request

        Returns:
            Dictionary to be serialized as JSON (200), or (dictionary, status code)

        Raises:
            AuthenticationRequired: For missing identity (401)
            ValueError: For client errors (400)
            PermissionError: For authorization errors (403)
            FileNotFoundError: For not found errors (404)
            BusinessLogicError: Mapped through its error code
            Exception: For internal server errors (500)
        """
        pass

    @abstractmethod
    def get_allowed_methods(self) -> List[str]:
        """
        Return list of allowed HTTP methods for this trigger.

        Returns:
            List of HTTP methods (e.g., ["GET"], ["POST"])
        """
        pass

    # ========================================================================
    # CONCRETE INFRASTRUCTURE METHODS
    # ========================================================================

    def handle_request(self, req: func.HttpRequest) -> func.HttpResponse:
        """
        Main entry point for HTTP request handling.

        Args:
            req: Azure Functions HTTP request object

        Returns:
            Azure Functions HTTP response with JSON content
        """
        request_id = req.headers.get("X-Request-ID") or self._generate_request_id()

        self.logger.info(
            f"🌐 [{self.trigger_name}] Request {request_id} started: "
            f"{req.method} {req.url}"
        )

        try:
            if req.method not in self.get_allowed_methods():
                return self._create_error_response(
                    error="Method not allowed",
                    message=f"Method {req.method} not allowed. Allowed: {', '.join(self.get_allowed_methods())}",
                    status_code=405,
                    request_id=request_id
                )

            response_data = self.process_request(req, request_id)
            status_code = 200
            if isinstance(response_data, tuple):
                response_data, status_code = response_data

            self.logger.info(
                f"✅ [{self.trigger_name}] Request {request_id} completed with {status_code}"
            )
            return self._create_json_response(response_data, status_code, request_id)

        except AuthenticationRequired as e:
            self.logger.warning(f"🔒 [{self.trigger_name}] Unauthenticated: {e}")
            return self._create_error_response(
                error="Unauthorized",
                message=str(e),
                status_code=401,
                request_id=request_id
            )

        except BusinessLogicError as e:
            status_code = get_http_status_code(e.error_code)
            log = self.logger.warning if status_code < 500 else self.logger.error
            log(f"❌ [{self.trigger_name}] {e.error_code.value}: {e.message or e}")
            payload = create_error_response(
                e.error_code,
                e.message or str(e),
                error_type=type(e).__name__
            )
            return self._create_json_response(payload, status_code, request_id)

        except ValueError as e:
            self.logger.warning(f"❌ [{self.trigger_name}] Client error: {e}")
            return self._create_error_response(
                error="Bad request",
                message=str(e),
                status_code=400,
                request_id=request_id
            )

        except PermissionError as e:
            self.logger.warning(f"🚫 [{self.trigger_name}] Permission denied: {e}")
            return self._create_error_response(
                error="Forbidden",
                message=str(e),
                status_code=403,
                request_id=request_id
            )

        except FileNotFoundError as e:
            self.logger.info(f"🔍 [{self.trigger_name}] Not found: {e}")
            return self._create_error_response(
                error="Not found",
                message=str(e),
                status_code=404,
                request_id=request_id
            )

        except Exception as e:
            self.logger.error(f"💥 [{self.trigger_name}] Internal error: {e}")
            self.logger.debug(f"📍 Full traceback: {traceback.format_exc()}")
            return self._create_error_response(
                error="Internal server error",
                message="An unexpected error occurred",
                status_code=500,
                request_id=request_id
            )

    # ========================================================================
    # UTILITY METHODS FOR SUBCLASSES
    # ========================================================================

    def extract_path_params(self, req: func.HttpRequest, required_params: List[str]) -> Dict[str, str]:
        """
        Extract and validate path parameters.

        Raises:
            ValueError: If required parameters are missing
        """
        params = {}
        missing_params = []

        for param_name in required_params:
            value = req.route_params.get(param_name)
            if not value:
                missing_params.append(param_name)
            else:
                params[param_name] = value

        if missing_params:
            raise ValueError(f"Missing required path parameters: {', '.join(missing_params)}")

        return params

    def extract_json_body(self, req: func.HttpRequest, required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Extract and parse JSON request body.

        Raises:
            ValueError: If body is required but missing, not an object, or invalid JSON
        """
        try:
            body = req.get_json()
        except ValueError as e:
            if not required and not req.get_body():
                return None
            raise ValueError(f"Invalid JSON in request body: {e}") from e

        if body is None and required:
            raise ValueError("Request body is required")
        if body is not None and not isinstance(body, dict):
            raise ValueError("Request body must be a JSON object")
        return body

    def extract_int_param(self, req: func.HttpRequest, name: str, default: Optional[int] = None,
                          minimum: int = 1, maximum: int = 500) -> Optional[int]:
        """
        Optional integer query parameter within [minimum, maximum].

        Raises:
            ValueError: Not an integer or out of range
        """
        raw = req.params.get(name)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except ValueError as e:
            raise ValueError(f"{name} must be an integer") from e
        if not minimum <= value <= maximum:
            raise ValueError(f"{name} must be between {minimum} and {maximum}")
        return value

    def get_user_id(self, req: func.HttpRequest) -> str:
        """
        Authenticated user id from the platform auth header.

        Raises:
            AuthenticationRequired: Header missing or blank
        """
        user_id = (req.headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            raise AuthenticationRequired("Authentication required")
        return user_id

    # ========================================================================
    # PRIVATE INFRASTRUCTURE METHODS
    # ========================================================================

    def _generate_request_id(self) -> str:
        """Generate unique request ID for tracing."""
        return str(uuid.uuid4())[:8]

    def _create_json_response(self, data: Dict[str, Any], status_code: int, request_id: str) -> func.HttpResponse:
        response_data = {
            **data,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        return func.HttpResponse(
            json.dumps(response_data, default=str),
            status_code=status_code,
            mimetype="application/json",
            headers={"X-Request-ID": request_id}
        )

    def _create_error_response(self, error: str, message: str, status_code: int,
                               request_id: str) -> func.HttpResponse:
        """Create standardized error response."""
        return self._create_json_response(
            {"success": False, "error": error, "message": message},
            status_code,
            request_id
        )


# ============================================================================
# SPECIALIZED BASE CLASSES FOR COMMON PATTERNS
# ============================================================================

class ProductTrigger(BaseHttpTrigger):
    """
    Base class for endpoints under /api/products/{product_id}.

    Services are created on first use so importing function_app never opens
    a database connection.
    """

    def __init__(self, trigger_name: str, regeneration_service=None, history_service=None):
        super().__init__(trigger_name)
        self._regeneration_service = regeneration_service
        self._history_service = history_service

    @property
    def regeneration_service(self):
        if self._regeneration_service is None:
            from services.single_view_regeneration import SingleViewRegenerationService
            self._regeneration_service = SingleViewRegenerationService()
        return self._regeneration_service

    @property
    def history_service(self):
        if self._history_service is None:
            from services.initial_revision import RevisionHistoryService
            self._history_service = RevisionHistoryService()
        return self._history_service

    def get_product_id(self, req: func.HttpRequest) -> str:
        product_id = self.extract_path_params(req, ["product_id"])["product_id"].strip()
        if not product_id:
            raise ValidationError("product_id is required")
        return product_id
