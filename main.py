# file: main.py
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

from command_parser import parse_trade_command, generate_examples
from command_replies import format_parse_reply
from db_setup import setup_database
from db_utils import fetch_events
from trade_logger import log_event, log_command_received, log_parse_result


class CommandRequest(BaseModel):
    text: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_database()
    log_event("APP_STARTUP", {"message": "Trade command parser ready."})

    yield

    log_event("APP_SHUTDOWN", {"message": "Trade command parser stopped."})

app = FastAPI(title="Trade Command Parser", version="1.0.0", lifespan=lifespan)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


@app.get("/examples")
async def examples():
    return {"examples": generate_examples()}


@app.post("/parse_command")
def parse_command(request: CommandRequest):
    """
    Parses one chat command. A rejected command is a 400 carrying every error,
    the caller must never try to execute anything from it.
    """
    log_command_received(request.text)
    result = parse_trade_command(request.text)
    log_parse_result(request.text, result)

    body = result.model_dump(mode="json")
    body["reply"] = format_parse_reply(result)
    if not result.success:
        return JSONResponse(status_code=400, content=body)
    body["order_params"] = result.command.to_order_params()
    return body


@app.get("/events")
def recent_events(event_type: Optional[str] = None, limit: int = Query(50, ge=1, le=500)):
    return {"events": fetch_events(event_type, limit)}
