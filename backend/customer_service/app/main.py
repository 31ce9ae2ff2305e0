# backend/customer_service/app/main.py

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import List

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Database, get_db
from .models import Customer
from .schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    DeleteAllResponse,
    MessageResponse,
)
from .startup import StartupError, StartupSequencer

# --- Standard Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
CORS_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]
GRACEFUL_SHUTDOWN_SECONDS = 30


# --- Readiness Gate ---
def require_ready(request: Request):
    sequencer = request.app.state.sequencer
    if not sequencer.ready:
        logger.warning(
            f"Customer Service: Rejecting {request.method} {request.url.path}, database state is '{sequencer.state.value}'."
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up. Database is not ready yet.",
        )


router = APIRouter(
    prefix="/api/customers",
    tags=["customers"],
    dependencies=[Depends(require_ready)],
)


# --- CRUD Endpoints for Customers ---
@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new customer",
)
def create_customer(customer: CustomerCreate, db: Session = Depends(get_db)):
    logger.info(
        f"Customer Service: Creating customer: {customer.firstname} {customer.lastname}"
    )
    db_customer = Customer(**customer.model_dump())

    try:
        db.add(db_customer)
        db.commit()
        db.refresh(db_customer)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Customer Service: Error creating customer: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create customer.",
        )

    logger.info(
        f"Customer Service: Customer {db_customer.id} created successfully."
    )
    return db_customer


@router.get(
    "",
    response_model=List[CustomerResponse],
    summary="Retrieve a list of all customers",
)
def list_customers(db: Session = Depends(get_db)):
    logger.info("Customer Service: Listing customers")
    try:
        customers = db.query(Customer).order_by(Customer.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Customer Service: Error listing customers: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not retrieve customers.",
        )

    logger.info(f"Customer Service: Retrieved {len(customers)} customers.")
    return customers


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Retrieve a single customer by ID",
)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    """
    Retrieves details for a specific customer using their unique ID.
    """
    logger.info(f"Customer Service: Fetching customer with ID: {customer_id}")
    try:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
    except SQLAlchemyError as e:
        logger.error(
            f"Customer Service: Error fetching customer {customer_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not retrieve customer with id={customer_id}.",
        )

    if not customer:
        logger.warning(f"Customer Service: Customer with ID {customer_id} not found.")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found"
        )
    return customer


@router.put(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Update an existing customer by ID",
)
def update_customer(
    customer_id: int, customer_data: CustomerUpdate, db: Session = Depends(get_db)
):
    """
    Updates an existing customer's details. Only provided fields will be updated.
    """
    update_data = customer_data.model_dump(exclude_unset=True)
    logger.info(
        f"Customer Service: Updating customer with ID: {customer_id} with data: {update_data}"
    )

    try:
        db_customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if db_customer:
            for key, value in update_data.items():
                setattr(db_customer, key, value)
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Customer Service: Error updating customer {customer_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not update customer with id={customer_id}.",
        )

    if not db_customer:
        logger.warning(
            f"Customer Service: Attempted to update non-existent customer with ID {customer_id}."
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found"
        )

    logger.info(f"Customer Service: Customer {customer_id} updated successfully.")
    return {"message": "Customer updated successfully"}


@router.delete(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Delete a customer by ID",
)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    """
    Deletes a customer record from the database.
    """
    logger.info(
        f"Customer Service: Attempting to delete customer with ID: {customer_id}"
    )
    try:
        deleted = (
            db.query(Customer)
            .filter(Customer.id == customer_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Customer Service: Error deleting customer {customer_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not delete customer with id={customer_id}.",
        )

    if deleted != 1:
        logger.warning(
            f"Customer Service: Attempted to delete non-existent customer with ID {customer_id}."
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found"
        )

    logger.info(f"Customer Service: Customer {customer_id} deleted successfully.")
    return {"message": "Customer deleted successfully"}


@router.delete(
    "",
    response_model=DeleteAllResponse,
    summary="Delete all customers",
)
def delete_all_customers(db: Session = Depends(get_db)):
    logger.info("Customer Service: Deleting all customers")
    try:
        deleted = db.query(Customer).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Customer Service: Error deleting all customers: {e}", exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete customers.",
        )

    logger.info(f"Customer Service: {deleted} customers deleted.")
    return {"message": f"{deleted} customers deleted successfully", "deleted": deleted}


# --- FastAPI Event Handlers ---
async def start_database(app: FastAPI):
    """
    Runs the startup sequencer. Exhausting its attempts is fatal: the
    process exits with status 1 and relies on its supervisor to restart it.
    """
    try:
        await app.state.sequencer.run()
    except StartupError:
        logger.critical(
            "Customer Service: Database could not be brought up. Exiting application."
        )
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Started in the background so the server listens (and answers 503)
    # while the database comes up.
    startup_task = asyncio.create_task(start_database(app))
    app.state.startup_task = startup_task

    yield

    logger.info("Customer Service: Shutting down...")
    if not startup_task.done():
        startup_task.cancel()
        try:
            await startup_task
        except asyncio.CancelledError:
            logger.info("Customer Service: Database startup cancelled.")
    app.state.database.dispose()
    logger.info("Customer Service: Database connections closed.")


# --- Exception Handlers ---
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        f"Customer Service: Invalid request to {request.method} {request.url.path}: {exc.errors()}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Customer Service: Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


# --- FastAPI Application Setup ---
def create_app(database: Database = None, sequencer: StartupSequencer = None) -> FastAPI:
    database = database or Database()
    sequencer = sequencer or StartupSequencer(database)

    app = FastAPI(
        title="Customer Service API",
        description="Manages customer records for the customer management system.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.sequencer = sequencer

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --- Root Endpoint ---
    @app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
    async def read_root():
        return {"message": "Customer Management API", "status": "ok"}

    # --- Health Check Endpoint ---
    @app.get("/health", summary="Health check endpoint")
    async def health_check(request: Request):
        sequencer = request.app.state.sequencer
        body = {
            "status": "ok" if sequencer.ready else "unavailable",
            "service": "customer-service",
            "database": sequencer.state.value,
        }
        if not sequencer.ready:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body
            )
        return body

    app.include_router(router)
    return app


app = create_app()


def run():
    logger.info(f"Customer Service: Listening on {HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
    )


if __name__ == "__main__":
    run()
