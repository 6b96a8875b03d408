from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agencyhub.approvals.columns import WorkflowStages
from agencyhub.audit import write_audit
from agencyhub.config import settings
from agencyhub.log import get_logger
from agencyhub.models import Column, Group, Task, Workspace, as_utc
from agencyhub.notifications.relay import Backend, Channel, NotificationRelay

logger = get_logger(__name__)

END_OF_DAY = time(23, 59)


@dataclass(frozen=True)
class Threshold:
  key: str
  window: timedelta
  field: str


THRESHOLDS = (
  Threshold(key="2hr", window=timedelta(hours=2), field="last_notified_2hr_at"),
  Threshold(key="30min", window=timedelta(minutes=30), field="last_notified_30min_at"),
)


@dataclass(frozen=True)
class DeadlineScanResult:
  sent: int = 0
  skipped: int = 0
  failed: int = 0

  @property
  def fired(self) -> int:
    return self.sent + self.skipped

  def summary(self) -> str:
    return f"Checked deadlines. Sent {self.fired} notifications."


@dataclass(frozen=True)
class _Candidate:
  task_id: str
  title: str
  group_id: str
  workspace_id: str
  workspace_name: str
  column_title: str
  due_date: date
  due_time: time | None
  last_notified: dict[str, datetime | None]


def due_instant(due_date: date, due_time: time | None, *, tz: str | None = None) -> datetime:
  zone = ZoneInfo(tz or settings.deadline_timezone)
  return datetime.combine(due_date, due_time or END_OF_DAY, tzinfo=zone)


def should_fire(due: datetime, last_notified: datetime | None, *, window: timedelta, now: datetime) -> bool:
  if not (now < due <= now + window):
    return False
  last = as_utc(last_notified)
  return last is None or last < now - window


def deadline_message(threshold: Threshold, *, title: str, workspace_name: str, column_title: str) -> str:
  if threshold.key == "30min":
    return (
      f'🚨 ALERTA: A tarefa *"{title}"* do workspace *"{workspace_name}"* vence em menos de 30 minutos! '
      f"Status atual: *{column_title}*."
    )
  return (
    f'⏰ Lembrete: A tarefa *"{title}"* do workspace *"{workspace_name}"* vence em menos de 2 horas! '
    f"Status atual: *{column_title}*."
  )


async def _candidates(db: AsyncSession, stages: WorkflowStages) -> list[_Candidate]:
  res = await db.execute(
    select(Task, Column.title, Workspace.id, Workspace.name)
    .join(Column, Column.id == Task.column_id)
    .join(Group, Group.id == Task.group_id)
    .join(Workspace, Workspace.id == Group.workspace_id)
    .where(Task.due_date.is_not(None), Column.title.not_in(sorted(stages.closed())))
    .order_by(Task.due_date.asc(), Task.id.asc())
  )
  out: list[_Candidate] = []
  for task, column_title, workspace_id, workspace_name in res.all():
    out.append(
      _Candidate(
        task_id=task.id,
        title=task.title,
        group_id=task.group_id,
        workspace_id=workspace_id,
        workspace_name=workspace_name,
        column_title=column_title,
        due_date=task.due_date,
        due_time=task.due_time,
        last_notified={t.field: getattr(task, t.field) for t in THRESHOLDS},
      )
    )
  return out


async def scan_deadlines(
  db: AsyncSession,
  relay: NotificationRelay,
  *,
  now: datetime | None = None,
  stages: WorkflowStages | None = None,
) -> DeadlineScanResult:
  """
  Fire one-shot 2h / 30min reminders for open tasks with a due date.

  Each alert is sent and its mark committed on its own, so a delivered alert keeps its mark even
  when a later alert for the same task fails. A failed alert is rolled back, counted in `failed`,
  and retried on the next scan.
  """
  now = now or datetime.now(timezone.utc)
  stages = stages or WorkflowStages.from_settings()

  candidates = await _candidates(db, stages)
  # Release the read transaction before per-alert work.
  await db.rollback()

  sent = skipped = failed = 0
  for c in candidates:
    due = due_instant(c.due_date, c.due_time)
    for t in THRESHOLDS:
      if not should_fire(due, c.last_notified[t.field], window=t.window, now=now):
        continue
      message = deadline_message(t, title=c.title, workspace_name=c.workspace_name, column_title=c.column_title)
      try:
        result = await relay.send(message, backend=Backend.TELEGRAM, channel=Channel.DEADLINES)
        await db.execute(update(Task).where(Task.id == c.task_id).values({t.field: now}))
        await write_audit(
          db,
          event_type="deadline.notified",
          entity_type="Task",
          entity_id=c.task_id,
          workspace_id=c.workspace_id,
          group_id=c.group_id,
          task_id=c.task_id,
          payload={"threshold": t.key, "due": due, "status": result.status},
        )
        await db.commit()
      except Exception as e:
        await db.rollback()
        failed += 1
        logger.error("deadline.alert.failed", task_id=c.task_id, threshold=t.key, error=str(e))
        continue

      if result.delivered:
        sent += 1
      else:
        skipped += 1
      logger.info("deadline.alert.fired", task_id=c.task_id, threshold=t.key, status=result.status)

  return DeadlineScanResult(sent=sent, skipped=skipped, failed=failed)
