"""
Single-View Regeneration HTTP Trigger.

HTTP endpoint for POST /api/products/{product_id}/views/{view_type}/regenerate.

Request body:
    {
        "revisionId": "single_view_edit_3_1718000000000",
        "editPrompt": "make it gold",
        "referenceViews": {"front": "https://...", "side": "https://..."}
    }

A failed regeneration is answered with the status code its error code maps
to and the same camelCase payload shape as success.

Exports:
    RegenerateViewTrigger: Regeneration trigger class
    regenerate_view_trigger: Singleton trigger instance
"""

from typing import Any, Dict, List

import azure.functions as func

from core.models.enums import ViewType
from .http_base import ProductTrigger, ResponseData

_VIEW_NAMES = {v.value for v in ViewType}


class RegenerateViewTrigger(ProductTrigger):
    """regenerateSingleView HTTP trigger implementation."""

    def __init__(self, **services):
        super().__init__("regenerate_view", **services)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest, request_id: str) -> ResponseData:
        user_id = self.get_user_id(req)
        product_id = self.get_product_id(req)
        view_type = self.extract_path_params(req, ["view_type"])["view_type"].strip().lower()
        body = self.extract_json_body(req, required=True)

        payload = self._build_payload(product_id, view_type, body)
        result = self.regeneration_service.regenerate_single_view(user_id, payload, request_id=request_id)
        return result.to_response(), result.http_status

    @staticmethod
    def _build_payload(product_id: str, view_type: str, body: Dict[str, Any]) -> Dict[str, Any]:
        references = body.get("referenceViews") or {}
        if not isinstance(references, dict):
            raise ValueError("referenceViews must be an object keyed by view type")
        return {
            "product_id": product_id,
            "view_type": view_type,
            "revision_id": body.get("revisionId"),
            "edit_prompt": body.get("editPrompt"),
            "reference_views": {k: v for k, v in references.items() if k in _VIEW_NAMES},
        }


# Create singleton instance for use in function_app.py
regenerate_view_trigger = RegenerateViewTrigger()
