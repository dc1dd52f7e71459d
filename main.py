import asyncio
import json
import sys
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models, schemas, database
from config import Settings
from server import serve

PARSE_FAILED = "Failed to parse JSON body"
SAVE_FAILED = "Failed to save task to database"
FETCH_FAILED = "Failed to fetch tasks from database"
SCAN_FAILED = "Failed to scan tasks from database"
SAVED = "Task saved successfully"

_decoder = json.JSONDecoder()


class TaskServiceError(Exception):
    """Request-level failure answered with a fixed plain-text message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(TaskServiceError):
    status_code = 400


class StorageError(TaskServiceError):
    status_code = 500


async def task_service_error_handler(request: Request, exc: TaskServiceError) -> PlainTextResponse:
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def task_from_body(request: Request) -> schemas.TaskCreate:
    # Content-Type 과 상관없이 본문을 JSON 으로 해석. 첫 번째 값만 읽고 나머지는 무시
    body = await request.body()
    try:
        data, _ = _decoder.raw_decode(body.decode("utf-8").lstrip())
    except ValueError as e:
        logger.debug("Rejected task body: {}", e)
        raise BadRequest(PARSE_FAILED) from e

    if data is None:
        data = {}
    try:
        return schemas.TaskCreate.model_validate(data)
    except ValidationError as e:
        logger.debug("Rejected task body: {}", e)
        raise BadRequest(PARSE_FAILED) from e


router = APIRouter()


# [API 1] 할 일 저장
@router.post("/save_task", status_code=201, response_class=PlainTextResponse)
def save_task(task: schemas.TaskCreate = Depends(task_from_body), db: Session = Depends(database.get_db)):
    new_task = models.Task(task=task.task, deadline=task.deadline)
    try:
        db.add(new_task)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to insert task: {}", e)
        raise StorageError(SAVE_FAILED) from e
    logger.debug("Task saved id={}", new_task.id)
    return SAVED


# [API 2] 전체 목록
@router.get("/task_list", response_model=List[schemas.TaskResponse])
def task_list(db: Session = Depends(database.get_db)):
    try:
        rows = db.query(models.Task).order_by(models.Task.id).all()
    except SQLAlchemyError as e:
        logger.error("Failed to query tasks: {}", e)
        raise StorageError(FETCH_FAILED) from e

    try:
        tasks = [schemas.TaskResponse.model_validate(row) for row in rows]
    except ValidationError as e:
        logger.error("Failed to decode task row: {}", e)
        raise StorageError(SCAN_FAILED) from e
    return tasks


def create_app(engine: Engine) -> FastAPI:
    """Build the HTTP app around an already opened storage engine."""
    app = FastAPI(title="Task Server")
    app.state.session_factory = database.make_session_factory(engine)
    app.add_exception_handler(TaskServiceError, task_service_error_handler)
    app.include_router(router)
    return app


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def main(settings: Optional[Settings] = None) -> int:
    settings = settings or Settings()
    setup_logging(settings.log_level)

    try:
        engine = database.make_engine(settings.database_url)
        database.init_db(engine)
    except SQLAlchemyError as e:
        logger.critical("error opening database: {}", e)
        return 1

    try:
        return asyncio.run(serve(create_app(engine), settings))
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
