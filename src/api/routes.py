"""
API routes for LinguaVerse

REST endpoints: health check and message submission.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
import logging

from src.models import COLLECTION_MESSAGES, MessageCreate
from src.services.firebase import SERVER_TIMESTAMP, FirebaseService

# Logger for API routes
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["linguaverse"])


def get_firebase_service(request: Request) -> FirebaseService:
    """Firestore service built by the application lifespan"""
    service = getattr(request.app.state, "firebase_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Firebase service not initialized")
    return service


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": request.app.state.settings.app_name,
        "firebase_initialized": getattr(request.app.state, "firebase_service", None) is not None,
        "identity_initialized": getattr(request.app.state, "identity_service", None) is not None,
    }


@router.post("/messages")
@router.post("/example", include_in_schema=False)
async def create_message(body: MessageCreate, firebase: FirebaseService = Depends(get_firebase_service)):
    """
    Store a message with a server-assigned timestamp.

    Request body:
    {
        "message": "Hola!",
        "userId": "uid_123"
    }

    Response:
    {
        "success": true,
        "docId": "AbC123",
        "message": "Message added successfully!"
    }
    """
    if not body.message or not body.user_id:
        return JSONResponse(status_code=400, content={"error": "Message and userId are required."})

    try:
        doc_id = await firebase.add_document(COLLECTION_MESSAGES, {
            "text": body.message,
            "authorId": body.user_id,
            "timestamp": SERVER_TIMESTAMP,
        })
    except Exception as e:
        logger.error(f"❌ API Error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error", "details": str(e)})

    return {"success": True, "docId": doc_id, "message": "Message added successfully!"}
