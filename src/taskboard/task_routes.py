"""
Task REST Endpoints

CRUD plus filtered listing for tasks. Fixed-path listings (active, by status,
by priority, by owner) and the free-form search all build a FilterCriteria and
share TaskService.search, so paging, sorting and error reporting behave the
same everywhere.

Routes with literal path segments are declared before ``/{task_id}`` so they
take precedence.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from .config import Settings
from .dependencies import get_settings, get_task_service
from .models import (
    CreateTaskRequest,
    SearchTaskRequest,
    TaskPageResponse,
    TaskResponse,
    UpdateTaskRequest,
)
from .params import DEFAULT_SORT, PageRequest, criteria_from_request, parse_priority, parse_status, parse_uuid
from .service import Page, TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def page_request(
    page: int = Query(0, description="Page number, starting at 0"),
    size: Optional[int] = Query(None, description="Items per page"),
    sort: str = Query(DEFAULT_SORT, description="Sort as field,direction e.g. createdAt,desc"),
    settings: Settings = Depends(get_settings),
) -> PageRequest:
    return PageRequest.parse(page, size, sort, settings.default_page_size, settings.max_page_size)


def to_page_response(page: Page) -> TaskPageResponse:
    return TaskPageResponse(
        content=[TaskResponse.from_task(task) for task in page.content],
        page_number=page.page_number,
        page_size=page.page_size,
        total_elements=page.total_elements,
        total_pages=page.total_pages,
        first=page.first,
        last=page.last,
        empty=page.empty,
    )


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(request: CreateTaskRequest,
                      service: TaskService = Depends(get_task_service)):
    return TaskResponse.from_task(service.create_task(request))


@router.get("", response_model=TaskPageResponse)
async def list_tasks(page: PageRequest = Depends(page_request),
                     service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(page))


@router.get("/active", response_model=TaskPageResponse)
async def list_active_tasks(page: PageRequest = Depends(page_request),
                            service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(page, is_active=True))


@router.get("/status/{status}", response_model=TaskPageResponse)
async def list_tasks_by_status(status: str,
                               page: PageRequest = Depends(page_request),
                               service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(page, status=parse_status(status)))


@router.get("/priority/{priority}", response_model=TaskPageResponse)
async def list_tasks_by_priority(priority: str,
                                 page: PageRequest = Depends(page_request),
                                 service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(page, priority=parse_priority(priority)))


@router.get("/active/status/{status}", response_model=TaskPageResponse)
async def list_active_tasks_by_status(status: str,
                                      page: PageRequest = Depends(page_request),
                                      service: TaskService = Depends(get_task_service)):
    return to_page_response(
        service.list_tasks(page, is_active=True, status=parse_status(status))
    )


@router.get("/active/priority/{priority}", response_model=TaskPageResponse)
async def list_active_tasks_by_priority(priority: str,
                                        page: PageRequest = Depends(page_request),
                                        service: TaskService = Depends(get_task_service)):
    return to_page_response(
        service.list_tasks(page, is_active=True, priority=parse_priority(priority))
    )


@router.get("/user/{user_id}", response_model=TaskPageResponse)
async def list_tasks_by_user(user_id: str,
                             page: PageRequest = Depends(page_request),
                             service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(page, owner_id=parse_uuid(user_id, "user_id")))


@router.get("/user/{user_id}/active", response_model=TaskPageResponse)
async def list_active_tasks_by_user(user_id: str,
                                    page: PageRequest = Depends(page_request),
                                    service: TaskService = Depends(get_task_service)):
    return to_page_response(
        service.list_tasks(page, is_active=True, owner_id=parse_uuid(user_id, "user_id"))
    )


@router.get("/user/{user_id}/status/{status}", response_model=TaskPageResponse)
async def list_tasks_by_user_and_status(user_id: str, status: str,
                                        page: PageRequest = Depends(page_request),
                                        service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(
        page, owner_id=parse_uuid(user_id, "user_id"), status=parse_status(status)
    ))


@router.get("/user/{user_id}/priority/{priority}", response_model=TaskPageResponse)
async def list_tasks_by_user_and_priority(user_id: str, priority: str,
                                          page: PageRequest = Depends(page_request),
                                          service: TaskService = Depends(get_task_service)):
    return to_page_response(service.list_tasks(
        page, owner_id=parse_uuid(user_id, "user_id"), priority=parse_priority(priority)
    ))


@router.get("/exists/title/{title}", response_model=bool)
async def task_title_exists(title: str, service: TaskService = Depends(get_task_service)):
    return service.title_exists(title)


@router.post("/search", response_model=TaskPageResponse)
async def search_tasks(request: SearchTaskRequest,
                       page: PageRequest = Depends(page_request),
                       service: TaskService = Depends(get_task_service)):
    """
    Search tasks by any combination of criteria.

    Omitted criteria do not constrain the result; present ones are ANDed.
    """
    criteria = criteria_from_request(request)
    return to_page_response(service.search(criteria, page))


@router.get("/search", response_model=TaskPageResponse)
async def search_tasks_by_query(query: str = Query(..., description="Text to search for"),
                                page: PageRequest = Depends(page_request),
                                service: TaskService = Depends(get_task_service)):
    return to_page_response(service.search_by_query(query, page))


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: UUID, service: TaskService = Depends(get_task_service)):
    return TaskResponse.from_task(service.get_task(task_id))


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: UUID, request: UpdateTaskRequest,
                      service: TaskService = Depends(get_task_service)):
    return TaskResponse.from_task(service.update_task(task_id, request))


@router.delete("/{task_id}", status_code=204)
async def delete_task(task_id: UUID, service: TaskService = Depends(get_task_service)):
    service.delete_task(task_id)
    return Response(status_code=204)


@router.delete("/{task_id}/hard", status_code=204)
async def hard_delete_task(task_id: UUID, service: TaskService = Depends(get_task_service)):
    service.hard_delete_task(task_id)
    return Response(status_code=204)
