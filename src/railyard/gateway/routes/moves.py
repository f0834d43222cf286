"""移动路由

POST /api/moves/validate: 校验移动提案，不写入。
POST /api/moves: 校验并提交移动。
- 201: 提交成功
- 404: 编辑的 trip（exclude_trip_id）不存在
- 409: 并发提交导致时间桶冲突
- 422: 校验未通过（响应中附带校验结果）
"""

from fastapi import APIRouter, Depends
from railyard.core.engine import commit_move, validate_move
from railyard.core.exceptions import MovementConflictError, ValidationFailedError
from railyard.core.models import MoveProposal, MoveValidationResult
from starlette.responses import JSONResponse

from ..deps import get_engine_config, get_store_group

router = APIRouter()


def serialize_validation(result: MoveValidationResult) -> dict:
    """校验结果序列化（包含 is_valid）"""
    return {
        "is_valid": result.is_valid,
        **result.model_dump(mode="json"),
    }


@router.post("/api/moves/validate")
async def validate(
    proposal: MoveProposal,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """校验移动提案"""
    result = await validate_move(store_group, proposal, config=config)
    return serialize_validation(result)


@router.post("/api/moves", status_code=201)
async def commit(
    proposal: MoveProposal,
    store_group=Depends(get_store_group),
    config=Depends(get_engine_config),
):
    """校验并提交移动，每辆车写入一条事件"""
    try:
        events = await commit_move(store_group, proposal, config=config)
    except MovementConflictError as e:
        return JSONResponse(
            status_code=409,
            content={"error": {"code": e.code, "message": e.message}},
        )
    except ValidationFailedError as e:
        if e.result is None:
            raise
        return JSONResponse(
            status_code=422,
            content={
                "error": {"code": e.code, "message": e.message},
                "validation": serialize_validation(e.result),
            },
        )

    return {
        "trip_id": events[0].trip_id if events else None,
        "events": [e.model_dump(mode="json") for e in events],
    }
