"""Return request API routes for customers."""

from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import Customer
from src.schemas.returns import CreateReturnRequest, ReturnListResponse, ReturnResponse
from src.services.return_service import ReturnService

router = APIRouter(prefix="/returns", tags=["returns"])


@router.post(
    "",
    response_model=ReturnResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a return",
    description="Opens a return for items of a delivered order within the return window.",
)
async def create_return(data: CreateReturnRequest, user: Customer) -> ReturnResponse:
    """Create a return request.

    Raises:
        NotFoundError: 404 if the order is not the user's.
        ConflictError: 409 if the order is not delivered or the window has passed.
        ValidationError: 400 if an item is unknown or over-returned.
    """
    service = ReturnService()
    return_request = await service.create_return_request(
        user_id=user.user_id,
        order_id=data.order_id,
        return_type=data.type,
        items=[item.model_dump(mode="json") for item in data.items],
        reason=data.reason,
        description=data.description,
        images=data.images,
        customer_email=user.email,
    )
    return ReturnResponse(**return_request)


@router.get("", response_model=ReturnListResponse, summary="List my returns")
async def list_returns(user: Customer) -> ReturnListResponse:
    service = ReturnService()
    returns = await service.list_user_returns(user.user_id)
    return ReturnListResponse(items=[ReturnResponse(**r) for r in returns])


@router.get("/{return_id}", response_model=ReturnResponse, summary="Get return by ID")
async def get_return(return_id: UUID, user: Customer) -> ReturnResponse:
    service = ReturnService()
    return_request = await service.get_user_return(return_id, user.user_id)
    return ReturnResponse(**return_request)
