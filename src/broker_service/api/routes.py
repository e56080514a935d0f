"""Broker, queue and message endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from broker_service.api.responses import BadRequestError, OperationErrors, PrettyJSONResponse
from broker_service.api.service import BrokerAdapterManager
from broker_service.errors import BrokerError
from broker_service.models.message import Broker, Queue, StandardMessage
from broker_service.models.request import MessageIDsRequest

router = APIRouter(default_response_class=PrettyJSONResponse)


def get_manager(request: Request) -> BrokerAdapterManager:
    return request.app.state.manager


def _require(**identifiers: str) -> None:
    for label, value in identifiers.items():
        if not value.strip():
            raise BadRequestError(f"no {label} given")


def _message_ids(payload: MessageIDsRequest) -> list[str]:
    if not payload.message_ids or any(not message_id.strip() for message_id in payload.message_ids):
        raise BadRequestError("messageIDs must be a non-empty list of message IDs")
    return payload.message_ids


@router.get("/brokers")
def get_all_brokers(manager: BrokerAdapterManager = Depends(get_manager)) -> list[Broker]:
    brokers = manager.brokers()
    if not brokers:
        raise BrokerError("no brokers configured")
    return brokers


@router.get("/brokers/{broker_id}/queues")
def get_all_queues(broker_id: str, manager: BrokerAdapterManager = Depends(get_manager)) -> list[Queue]:
    _require(broker_name=broker_id)
    return manager.adapter(broker_id).get_all_queues()


@router.get("/brokers/{broker_id}/queues/{queue_name}/messages")
def get_all_messages(
    broker_id: str, queue_name: str, manager: BrokerAdapterManager = Depends(get_manager)
) -> list[StandardMessage]:
    _require(broker_name=broker_id, queue_name=queue_name)
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        return adapter.get_all_messages(queue_name, cancel=cancel)


@router.delete("/brokers/{broker_id}/queues/{queue_name}")
def purge_queue(
    broker_id: str, queue_name: str, manager: BrokerAdapterManager = Depends(get_manager)
) -> Optional[str]:
    _require(broker_name=broker_id, queue_name=queue_name)
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        adapter.purge(queue_name, cancel=cancel)
    return None


@router.delete("/brokers/{broker_id}/queues/{queue_name}/messages/{message_id}")
def delete_message(
    broker_id: str,
    queue_name: str,
    message_id: str,
    manager: BrokerAdapterManager = Depends(get_manager),
) -> Optional[str]:
    _require(broker_name=broker_id, queue_name=queue_name, message_id=message_id)
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        adapter.delete_one(queue_name, message_id, cancel=cancel)
    return None


@router.delete("/brokers/{broker_id}/queues/{queue_name}/messages")
def delete_messages(
    broker_id: str,
    queue_name: str,
    payload: MessageIDsRequest,
    manager: BrokerAdapterManager = Depends(get_manager),
) -> Optional[str]:
    _require(broker_name=broker_id, queue_name=queue_name)
    message_ids = _message_ids(payload)
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        errors = adapter.delete_many(queue_name, message_ids, cancel=cancel)
    if errors:
        raise OperationErrors(errors)
    return None


@router.post("/brokers/{broker_id}/queues/{queue_name}/toqueue/{to_queue_name}/messages/{message_id}")
def move_message(
    broker_id: str,
    queue_name: str,
    to_queue_name: str,
    message_id: str,
    manager: BrokerAdapterManager = Depends(get_manager),
) -> Optional[str]:
    _require(
        broker_name=broker_id,
        queue_name=queue_name,
        destination_queue_name=to_queue_name,
        message_id=message_id,
    )
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        adapter.move_one(queue_name, to_queue_name, message_id, cancel=cancel)
    return None


@router.post("/brokers/{broker_id}/queues/{queue_name}/toqueue/{to_queue_name}/messages")
def move_messages(
    broker_id: str,
    queue_name: str,
    to_queue_name: str,
    payload: MessageIDsRequest,
    manager: BrokerAdapterManager = Depends(get_manager),
) -> Optional[str]:
    _require(broker_name=broker_id, queue_name=queue_name, destination_queue_name=to_queue_name)
    message_ids = _message_ids(payload)
    adapter = manager.adapter(broker_id)
    with manager.cancellation() as cancel:
        errors = adapter.move(queue_name, to_queue_name, message_ids, cancel=cancel)
    if errors:
        raise OperationErrors(errors)
    return None
