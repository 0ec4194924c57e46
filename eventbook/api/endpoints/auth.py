import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.api import deps
from eventbook.core import security
from eventbook.crud import user as user_crud
from eventbook.models.user import User
from eventbook.schemas.user import AuthResponse, PasswordUpdate, Token, UserCreate, UserLogin
from eventbook.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_token(user: User) -> str:
    return security.create_access_token(
        user.id, additional_claims={"role": user.role.value}
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register New User",
)  # type: ignore[misc]
async def register(
    *,
    db: AsyncSession = Depends(deps.get_db),
    user_in: UserCreate,
) -> Any:
    """
    **Create a New Account**

    Registers a regular user and returns an access token so the client
    is signed in straight away.

    **Request Body:**
    - `first_name`, `last_name` (string, 2-50 characters)
    - `email` (string): Unique email address
    - `password` (string): At least 8 characters with one uppercase letter and one number

    **Example Request:**
    ```bash
    curl -X POST "/api/v1/auth/register" \\
         -H "Content-Type: application/json" \\
         -d '{"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "password": "Analytical1"}'
    ```

    **Errors:**
    - `400`: Email already registered
    - `422`: Validation error (weak password, malformed email)
    """
    if await user_crud.get_by_email(db, email=user_in.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )
    user = await user_crud.create(db, obj_in=user_in)
    logger.info("Registered user %s", user.id)
    return AuthResponse(
        access_token=_issue_token(user), user=UserSchema.model_validate(user)
    )


@router.post("/login", response_model=AuthResponse, summary="User Login")  # type: ignore[misc]
async def login(
    *,
    db: AsyncSession = Depends(deps.get_db),
    credentials: UserLogin,
) -> Any:
    """
    **Authenticate and Get Access Token**

    **Request Body:**
    - `email` (string): Account email
    - `password` (string): Account password

    **Errors:**
    - `401`: Incorrect email or password
    - `403`: Account is deactivated
    """
    user = await user_crud.authenticate(
        db, email=credentials.email, password=credentials.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    if not user_crud.is_active(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated"
        )

    user = await user_crud.record_login(db, db_obj=user)
    return AuthResponse(
        access_token=_issue_token(user), user=UserSchema.model_validate(user)
    )


@router.get("/me", response_model=UserSchema, summary="Current User")  # type: ignore[misc]
async def read_me(
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Return the profile of the authenticated user.
    """
    return current_user


@router.patch("/update-password", response_model=Token, summary="Change Password")  # type: ignore[misc]
async def update_password(
    *,
    db: AsyncSession = Depends(deps.get_db),
    password_in: PasswordUpdate,
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    **Change Password**

    Verifies the current password, stores the new one and returns a fresh
    token. Tokens issued before the change stop working.

    **Errors:**
    - `401`: Current password is incorrect
    - `422`: New password does not meet the password rules
    """
    if not security.verify_password(
        password_in.current_password, current_user.hashed_password
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )
    user = await user_crud.update_password(
        db, db_obj=current_user, new_password=password_in.new_password
    )
    return Token(access_token=_issue_token(user))
