# backend/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy import func

from config import settings
from database import get_db, commit_or_rollback
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER
from schemas.common import Envelope
from schemas import user as schemas
from models.log import AUDIT_FAIL, AUDIT_SUCCESS
from utils.audit import write_log, client_ip
from utils.errors import ConflictError
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])

# Register a new user
@router.post("/register", response_model=Envelope[schemas.UserResponse], status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    # Normalize email input
    normalized_email = user.email.strip().lower()

    # Check for existing user
    db_user = db.query(User).filter(func.lower(User.email) == normalized_email).first()
    if db_user:
        write_log(db, user_id=None, action="REGISTER", resource="auth", status=AUDIT_FAIL,
                  ip=client_ip(request), meta={"email": normalized_email, "reason": "Email exists"})
        raise ConflictError("email already in use")

    # Role is fixed at creation; admin only when explicitly allowed
    role = ROLE_CUSTOMER
    if settings.ALLOW_ADMIN_SIGNUP and (user.role or "").lower() == ROLE_ADMIN:
        role = ROLE_ADMIN

    new_user = User(
        name=user.name.strip(),
        email=normalized_email,
        password_hash=get_password_hash(user.password),
        role=role,
    )
    db.add(new_user)
    try:
        commit_or_rollback(db, "registering user")
    except IntegrityError:
        raise ConflictError("email already in use")
    db.refresh(new_user)

    # Log successful registration event
    write_log(db, user_id=new_user.id, action="REGISTER", resource="auth", status=AUDIT_SUCCESS,
              ip=client_ip(request), meta={"email": new_user.email})

    return {"data": new_user}


# Authenticate user and issue JWT token
@router.post("/login", response_model=Envelope[schemas.Token])
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    db_user = db.query(User).filter(User.email == email).first()

    # Validate credentials and log failure on error
    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status=AUDIT_FAIL, ip=client_ip(request), meta={"email": email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")

    # Generate access token
    access_token = create_access_token(data={"sub": str(db_user.id), "role": db_user.role})

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
              status=AUDIT_SUCCESS, ip=client_ip(request), meta={"email": db_user.email})

    return {"data": {"access_token": access_token, "token_type": "bearer"}}


# Retrieve current authenticated user details
@router.get("/me", response_model=Envelope[schemas.UserResponse])
def me(current_user: User = Depends(get_current_user)):
    return {"data": current_user}
