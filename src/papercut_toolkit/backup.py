"""题库备份：JSON 数组，或按科目拆分打包成 zip"""
from __future__ import annotations
import json
import logging
import re
import zipfile
from collections import defaultdict
from pathlib import Path
from typing import Any

from papercut_toolkit.errors import MalformedImport
from papercut_toolkit.models import Question
from papercut_toolkit.records import question_from_record, question_to_record

logger = logging.getLogger(__name__)

JSON_SUFFIX = ".json"
ZIP_SUFFIX = ".zip"


def _safe_name(subject: str) -> str:
    name = re.sub(r"[^\w\-]+", "_", subject, flags=re.UNICODE).strip("_")
    return name or "subject"


def _dumps(questions: list[Question]) -> str:
    return json.dumps(
        [question_to_record(q) for q in questions],
        ensure_ascii=False,
        indent=2,
    )


def save_backup(
    questions: list[Question],
    output: Path,
    bundle: bool = False,
) -> Path:
    """bundle=True 时输出 zip，每个科目一个 JSON 文件"""
    output = Path(output)
    fp = output.with_suffix(ZIP_SUFFIX if bundle else JSON_SUFFIX)
    fp.parent.mkdir(parents=True, exist_ok=True)

    if not bundle:
        fp.write_text(_dumps(questions), encoding="utf-8")
        logger.info("JSON 备份完成: %s (%d 题)", fp, len(questions))
        return fp

    by_subject: dict[str, list[Question]] = defaultdict(list)
    for q in questions:
        by_subject[q.subject].append(q)

    used: set[str] = set()
    with zipfile.ZipFile(fp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for subject, qs in sorted(by_subject.items()):
            base = _safe_name(subject)
            name, n = base, 1
            while name in used:
                n += 1
                name = f"{base}_{n}"
            used.add(name)
            zf.writestr(f"{name}{JSON_SUFFIX}", _dumps(qs))

    logger.info("zip 备份完成: %s (%d 题, %d 个科目)", fp, len(questions), len(by_subject))
    return fp


def parse_payload(payload: Any, source: str = "<payload>") -> list[Question]:
    """payload 必须是题目记录数组；任一记录不合法则整批拒绝"""
    if not isinstance(payload, list):
        raise MalformedImport(f"{source}: 应为题目数组")

    questions: list[Question] = []
    for i, raw in enumerate(payload):
        try:
            questions.append(question_from_record(raw))
        except ValueError as exc:
            raise MalformedImport(f"{source}: 第 {i + 1} 条记录不合法: {exc}") from exc
    return questions


def _loads(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedImport(f"{source}: 不是有效的 JSON ({exc})") from exc


def load_backup(path: Path) -> list[Question]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"备份文件不存在: {path}")

    if zipfile.is_zipfile(path):
        questions: list[Question] = []
        with zipfile.ZipFile(path) as zf:
            entries = [
                info for info in zf.infolist()
                if not info.is_dir() and info.filename.lower().endswith(JSON_SUFFIX)
            ]
            if not entries:
                raise MalformedImport(f"{path.name}: 压缩包中没有 JSON 文件")
            for info in entries:
                source = f"{path.name}:{info.filename}"
                try:
                    text = zf.read(info).decode("utf-8")
                except UnicodeDecodeError as exc:
                    raise MalformedImport(f"{source}: 编码错误 ({exc})") from exc
                questions.extend(parse_payload(_loads(text, source), source))
    else:
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedImport(f"{path.name}: 编码错误 ({exc})") from exc
        questions = parse_payload(_loads(text, path.name), path.name)

    logger.info("备份读取完成: %s (%d 题)", path, len(questions))
    return questions
