from fastapi import APIRouter

from vendor_request_app.web.routers.analytics import router as analytics_router
from vendor_request_app.web.routers.documents import router as documents_router
from vendor_request_app.web.routers.my_requests import router as my_requests_router
from vendor_request_app.web.routers.review import router as review_router
from vendor_request_app.web.routers.session import router as session_router
from vendor_request_app.web.routers.system import router as system_router


router = APIRouter()
router.include_router(system_router)
router.include_router(session_router)
router.include_router(my_requests_router)
router.include_router(review_router)
router.include_router(analytics_router)
router.include_router(documents_router)
