"""CLI 入口模块 -- python -m surveycue <command>

支持的命令：
  cleanup-scheduled [older_than_seconds]  清理过旧的延迟问卷记录
  apply-retention [policy]                按保留策略清理会话
  validate-config <path>                  校验问卷配置文件
  list-sessions [user_id]                 列出会话

全局选项（放在命令之前）：
  --json         JSON 格式日志
  --log-level L  日志级别（默认取 SURVEYCUE_LOG_LEVEL）
"""

import asyncio
import sys

from .config import SCHEDULED_MAX_AGE_S, get_data_dir
from .exceptions import ConfigDecodeError
from .logging_config import setup_logging

USAGE = """用法: python -m surveycue [--json] [--log-level LEVEL] <command>
命令:
  cleanup-scheduled [older_than_seconds]  清理过旧的延迟问卷记录（默认 86400 秒）
  apply-retention [policy]                按保留策略清理会话（none/conservative/standard/aggressive）
  validate-config <path>                  校验问卷配置文件
  list-sessions [user_id]                 列出会话（缺省列出全部用户）"""


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口"""
    args = list(sys.argv[1:] if argv is None else argv)
    log_format: str | None = None
    log_level: str | None = None
    while args and args[0].startswith("--"):
        option = args.pop(0)
        if option == "--json":
            log_format = "json"
        elif option == "--log-level" and args:
            log_level = args.pop(0)
        else:
            print(f"未知选项: {option}")
            print(USAGE)
            return 1

    if not args:
        print(USAGE)
        return 1

    setup_logging(log_format, log_level)
    command, rest = args[0], args[1:]

    if command == "cleanup-scheduled":
        try:
            older_than = float(rest[0]) if rest else SCHEDULED_MAX_AGE_S
        except ValueError:
            print(f"无效的秒数: {rest[0]}")
            return 1
        return asyncio.run(cleanup_scheduled(older_than))
    if command == "apply-retention":
        return asyncio.run(apply_retention(rest[0] if rest else "standard"))
    if command == "validate-config":
        if not rest:
            print("缺少配置文件路径")
            return 1
        return validate_config(rest[0])
    if command == "list-sessions":
        return asyncio.run(list_sessions(rest[0] if rest else None))

    print(f"未知命令: {command}")
    print(USAGE)
    return 1


async def cleanup_scheduled(older_than_seconds: float) -> int:
    """执行延迟问卷清理"""
    from .services.recorder import EventRecorder

    recorder = EventRecorder(get_data_dir())
    print(f"存储目录: {recorder.storage_base_dir}")
    removed = await recorder.cleanup_old_scheduled_surveys(older_than_seconds)
    print(f"清理完成，删除 {removed} 条延迟问卷记录")
    return 0


async def apply_retention(policy_name: str) -> int:
    """执行会话保留策略"""
    from .models.retention import RetentionPolicy
    from .services.recorder import EventRecorder

    try:
        policy = RetentionPolicy.from_name(policy_name)
    except ValueError as e:
        print(str(e))
        return 1

    recorder = EventRecorder(get_data_dir(), retention_policy=policy)
    print(f"存储目录: {recorder.storage_base_dir}")
    removed = await recorder.apply_retention_policy()
    remaining = await recorder.list_all_sessions()
    print(f"清理完成，删除 {removed} 个会话，剩余 {len(remaining)} 个")
    return 0


def validate_config(path: str) -> int:
    """校验配置文件并列出规则"""
    from .models.survey import SurveyConfig

    try:
        config = SurveyConfig.from_path(path)
    except ConfigDecodeError as e:
        print(f"配置无效: {e}")
        return 1

    print(f"配置有效，共 {len(config.surveys)} 条规则")
    for rule in config.surveys:
        delay = rule.trigger.delay_seconds
        timing = f"延迟 {delay:g}s" if delay is not None else "立即"
        print(f"  {rule.rule_id}  event={rule.trigger.event.name}  {rule.response.type}  {timing}")
    return 0


async def list_sessions(user_id: str | None) -> int:
    """列出会话"""
    from .services.recorder import EventRecorder

    recorder = EventRecorder(get_data_dir())
    if user_id is None:
        sessions = await recorder.list_all_sessions()
    else:
        sessions = await recorder.list_sessions(user_id)

    for s in sessions:
        ended = s.ended_at.isoformat() if s.ended_at else "-"
        print(f"{s.id}  user={s.user_id or 'anon'}  started={s.started_at.isoformat()}  ended={ended}")
    print(f"共 {len(sessions)} 个会话")
    return 0


if __name__ == "__main__":
    sys.exit(main())
