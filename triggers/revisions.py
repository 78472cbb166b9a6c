"""
Revision HTTP Triggers.

    POST /api/products/{product_id}/revisions/initial  - seed revision 0
    GET  /api/products/{product_id}/revisions?limit=N  - history, newest first

Exports:
    InitialRevisionTrigger, RevisionHistoryTrigger: Trigger classes
    initial_revision_trigger, revision_history_trigger: Singleton instances
"""

from typing import List

import azure.functions as func

from .http_base import ProductTrigger, ResponseData


class InitialRevisionTrigger(ProductTrigger):
    """Seed revision 0 from the views of the first multiview generation."""

    def __init__(self, **services):
        super().__init__("initial_revision", **services)

    def get_allowed_methods(self) -> List[str]:
        return ["POST"]

    def process_request(self, req: func.HttpRequest, request_id: str) -> ResponseData:
        user_id = self.get_user_id(req)
        product_id = self.get_product_id(req)
        body = self.extract_json_body(req, required=True)

        views = body.get("views")
        if not isinstance(views, dict) or not views:
            raise ValueError("views must be a non-empty object keyed by view type")

        result = self.history_service.seed_initial(user_id, {
            "product_id": product_id,
            "views": views,
            "model": body.get("model"),
            "thumbnails": body.get("thumbnails") or {},
        })
        return {
            "success": True,
            "batchId": result.batch_id,
            "revisionNumber": result.revision_number,
            "views": {r.view_type.value: {"id": r.id, "imageUrl": r.image_url} for r in result.records},
        }, 201


class RevisionHistoryTrigger(ProductTrigger):
    """List revision batches for a product."""

    def __init__(self, **services):
        super().__init__("revision_history", **services)

    def get_allowed_methods(self) -> List[str]:
        return ["GET"]

    def process_request(self, req: func.HttpRequest, request_id: str) -> ResponseData:
        user_id = self.get_user_id(req)
        product_id = self.get_product_id(req)
        limit = self.extract_int_param(req, "limit")

        history = self.history_service.list_history(user_id, product_id, limit=limit)
        return {
            "success": True,
            "productId": product_id,
            "count": len(history),
            "revisions": [entry.to_dict() for entry in history],
        }


# Create singleton instances for use in function_app.py
initial_revision_trigger = InitialRevisionTrigger()
revision_history_trigger = RevisionHistoryTrigger()
