# app/services/status_engine.py
"""
申请状态流转模块

not_started → in_progress → submitted → under_review → {accepted | rejected | waitlisted | deferred}

所有函数都是纯函数：只依赖传入的数据，不读数据库、不改全局状态。
读写 Supabase 的事情交给路由层。
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple, Union
import logging

from app.schemas.application import ApplicationStatus
from app.schemas.requirement import RequirementStatus

logger = logging.getLogger(__name__)

S = ApplicationStatus


# ===============================
# 流程定义
# ===============================
@dataclass(frozen=True)
class WorkflowStep:
    status: ApplicationStatus
    label: str
    description: str


STATUS_FLOW: Tuple[WorkflowStep, ...] = (
    WorkflowStep(S.NOT_STARTED, "未开始", "Application not yet started"),
    WorkflowStep(S.IN_PROGRESS, "进行中", "Working on application materials"),
    WorkflowStep(S.SUBMITTED, "已提交", "Application submitted successfully"),
    WorkflowStep(S.UNDER_REVIEW, "审核中", "Under university review"),
    WorkflowStep(S.ACCEPTED, "录取", "Congratulations! Accepted"),
    WorkflowStep(S.REJECTED, "拒绝", "Application rejected"),
    WorkflowStep(S.WAITLISTED, "候补", "Added to waitlist"),
    WorkflowStep(S.DEFERRED, "延期", "Decision deferred"),
)

# 录取结果（进度条上算同一步）
DECISION_STATUSES: FrozenSet[ApplicationStatus] = frozenset(
    {S.ACCEPTED, S.REJECTED, S.WAITLISTED, S.DEFERRED}
)

# 已提交之后，学生这边没有待办
SETTLED_STATUSES: FrozenSet[ApplicationStatus] = frozenset({S.SUBMITTED, S.UNDER_REVIEW}) | DECISION_STATUSES

# 进度条的步数：未开始 / 进行中 / 已提交 / 审核中 / 结果
PRIMARY_STEP_COUNT = 5

_STEP_INDEX: Dict[ApplicationStatus, int] = {
    S.NOT_STARTED: 0,
    S.IN_PROGRESS: 1,
    S.SUBMITTED: 2,
    S.UNDER_REVIEW: 3,
    **{s: PRIMARY_STEP_COUNT - 1 for s in DECISION_STATUSES},
}

_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.NOT_STARTED: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.UNDER_REVIEW}),
    S.UNDER_REVIEW: frozenset({S.ACCEPTED, S.REJECTED, S.WAITLISTED}),
    S.WAITLISTED: frozenset({S.ACCEPTED, S.REJECTED}),
    S.DEFERRED: frozenset({S.ACCEPTED, S.REJECTED, S.WAITLISTED}),
    S.ACCEPTED: frozenset(),
    S.REJECTED: frozenset(),
}

# 合法但不在默认按钮里出现的分支
EXCEPTIONAL_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.UNDER_REVIEW: frozenset({S.DEFERRED}),
}

# 页面上的“快捷操作”按钮：开始申请 / 标记已提交 / 进入审核
_QUICK_ACTIONS: Dict[ApplicationStatus, ApplicationStatus] = {
    S.NOT_STARTED: S.IN_PROGRESS,
    S.IN_PROGRESS: S.SUBMITTED,
    S.SUBMITTED: S.UNDER_REVIEW,
}

COMPLETED_REQUIREMENT_STATUSES: FrozenSet[RequirementStatus] = frozenset(
    {RequirementStatus.COMPLETED, RequirementStatus.SUBMITTED, RequirementStatus.WAIVED}
)


# ===============================
# 返回值
# ===============================
class InvalidTransition(ValueError):
    """请求的状态无法从当前状态一步到达"""

    def __init__(self, current: Any, requested: Any):
        self.current = _wire(current)
        self.requested = _wire(requested)
        super().__init__(f"无法从 {self.current} 变更为 {self.requested}")


@dataclass(frozen=True)
class Progress:
    step_index: int
    percentage: float


@dataclass(frozen=True)
class StatusChange:
    """写回数据库用：(application_id, new_status, updated_at)"""
    application_id: Optional[str]
    previous_status: ApplicationStatus
    new_status: ApplicationStatus
    updated_at: datetime
    overridden: bool = False


@dataclass(frozen=True)
class RequirementCompletion:
    completed: int = 0
    total: int = 0
    required_completed: int = 0
    required_total: int = 0
    percentage: float = 0.0


@dataclass(frozen=True)
class WorkflowView:
    steps: Tuple[WorkflowStep, ...]
    current_status: ApplicationStatus
    step_index: int
    percentage: float
    next_states: FrozenSet[ApplicationStatus]
    quick_action: Optional[ApplicationStatus]
    completion: RequirementCompletion = field(default_factory=RequirementCompletion)


# ===============================
# 工具函数
# ===============================
def _wire(value: Any) -> str:
    return value.value if isinstance(value, ApplicationStatus) else str(value)


def parse_status(value: Any) -> Optional[ApplicationStatus]:
    """字符串 → ApplicationStatus，未知值返回 None"""
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        return None


def get_field(item: Any, name: str, default: Any = None) -> Any:
    # 兼容 Supabase 返回的 dict 和 pydantic 模型
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


# ===============================
# 状态机
# ===============================
def compute_progress(status: Any) -> Progress:
    """
    当前状态在流程中的位置和百分比

    四种结果状态都算最后一步（100%）；未知状态按 not_started 处理
    """
    parsed = parse_status(status)
    if parsed is None:
        logger.warning(f"未知的申请状态: {status!r}，按 not_started 处理")
        return Progress(step_index=0, percentage=0.0)

    index = _STEP_INDEX[parsed]
    percentage = index / (PRIMARY_STEP_COUNT - 1) * 100
    return Progress(step_index=index, percentage=min(max(percentage, 0.0), 100.0))


def legal_next_states(status: Any) -> FrozenSet[ApplicationStatus]:
    parsed = parse_status(status)
    if parsed is None:
        logger.warning(f"未知的申请状态: {status!r}")
        return frozenset()
    return _TRANSITIONS[parsed]


def quick_action(status: Any) -> Optional[ApplicationStatus]:
    parsed = parse_status(status)
    return _QUICK_ACTIONS.get(parsed) if parsed is not None else None


def transition(
    current: Any,
    requested: Any,
    application_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """
    按流程变更状态

    Raises:
        InvalidTransition: requested 不能从 current 一步到达
    """
    current_status = parse_status(current)
    requested_status = parse_status(requested)
    if current_status is None or requested_status is None:
        raise InvalidTransition(current, requested)

    allowed = _TRANSITIONS[current_status] | EXCEPTIONAL_TRANSITIONS.get(current_status, frozenset())
    if requested_status not in allowed:
        raise InvalidTransition(current_status, requested_status)

    return StatusChange(
        application_id=application_id,
        previous_status=current_status,
        new_status=requested_status,
        updated_at=now or datetime.now(timezone.utc),
    )


def override_status(
    current: Any,
    requested: Any,
    application_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StatusChange:
    """
    管理员改写：跳过流程校验，只要求目标是合法枚举值
    当前值未知时也允许改写（用于修正脏数据）
    """
    requested_status = parse_status(requested)
    if requested_status is None:
        raise InvalidTransition(current, requested)

    current_status = parse_status(current)
    if current_status is None:
        logger.warning(f"改写前的状态未知: {current!r}")
        current_status = S.NOT_STARTED

    return StatusChange(
        application_id=application_id,
        previous_status=current_status,
        new_status=requested_status,
        updated_at=now or datetime.now(timezone.utc),
        overridden=True,
    )


# ===============================
# 材料完成度
# ===============================
def is_requirement_done(requirement: Any) -> bool:
    # waived 也算完成，不阻塞申请
    try:
        return RequirementStatus(get_field(requirement, "status")) in COMPLETED_REQUIREMENT_STATUSES
    except ValueError:
        return False


def requirement_completion(requirements: Optional[Iterable[Any]]) -> RequirementCompletion:
    """
    统计材料完成情况

    Args:
        requirements: Requirement 模型或 Supabase 行（dict）

    Returns:
        RequirementCompletion，空列表时全部为 0
    """
    total = completed = required_total = required_completed = 0

    for requirement in requirements or []:
        done = is_requirement_done(requirement)
        required = get_field(requirement, "is_required", True) is not False

        total += 1
        completed += done
        if required:
            required_total += 1
            required_completed += done

    percentage = round(completed / total * 100, 1) if total else 0.0
    return RequirementCompletion(
        completed=completed,
        total=total,
        required_completed=required_completed,
        required_total=required_total,
        percentage=percentage,
    )


# ===============================
# 即将截止
# ===============================
def is_settled(status: Any) -> bool:
    parsed = parse_status(status)
    return parsed in SETTLED_STATUSES


def upcoming_deadlines(
    applications: Iterable[Any],
    horizon_days: int,
    now: Union[date, datetime],
) -> Iterator[Any]:
    """
    [now, now + horizon_days] 内截止、且还没提交的申请，按截止日期升序

    生成器：每次调用都重新计算；日期相同的保持原顺序
    """
    start = to_date(now)
    end = start + timedelta(days=horizon_days)

    candidates = []
    for index, application in enumerate(applications):
        if is_settled(get_field(application, "status")):
            continue
        deadline = to_date(get_field(application, "deadline"))
        if deadline is None:
            continue
        if start <= deadline <= end:
            candidates.append((deadline, index, application))

    candidates.sort(key=lambda c: (c[0], c[1]))
    for _, _, application in candidates:
        yield application


# ===============================
# 页面展示用
# ===============================
def workflow_view(status: Any, requirements: Optional[Iterable[Any]] = None) -> WorkflowView:
    progress = compute_progress(status)
    return WorkflowView(
        steps=STATUS_FLOW,
        current_status=parse_status(status) or S.NOT_STARTED,
        step_index=progress.step_index,
        percentage=progress.percentage,
        next_states=legal_next_states(status),
        quick_action=quick_action(status),
        completion=requirement_completion(requirements),
    )


def workflow_view_to_dict(view: WorkflowView) -> Dict[str, Any]:
    return {
        "steps": [
            {"status": step.status.value, "label": step.label, "description": step.description}
            for step in view.steps
        ],
        "current_status": view.current_status.value,
        "step_index": view.step_index,
        "percentage": view.percentage,
        "next_states": sorted(s.value for s in view.next_states),
        "quick_action": view.quick_action.value if view.quick_action else None,
        "completion": completion_to_dict(view.completion),
    }


def completion_to_dict(completion: RequirementCompletion) -> Dict[str, Any]:
    return {
        "completed": completion.completed,
        "total": completion.total,
        "required_completed": completion.required_completed,
        "required_total": completion.required_total,
        "percentage": completion.percentage,
    }
