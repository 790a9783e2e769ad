from __future__ import annotations
import logging
import click
from pathlib import Path
from papercut_toolkit import __version__
from papercut_toolkit.ai import extract_triggers, make_suggester, suggest_for_topic
from papercut_toolkit.backup import load_backup, save_backup
from papercut_toolkit.config import ai_settings, ensure_sqlite_dir, load_config, resolve_db_url
from papercut_toolkit.errors import PaperCutError
from papercut_toolkit.folders import folder_counts, newest_first, resolve_many, search as search_questions
from papercut_toolkit.models import Folder, Topic, new_id
from papercut_toolkit.records import FOLDERS, QUESTIONS, TOPICS
from papercut_toolkit.stats import print_summary
from papercut_toolkit.store import RecordStore
from papercut_toolkit.sync import RepositorySynchronizer

log = logging.getLogger("papercut_toolkit.cli")


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _trunc(s: str, n: int = 40) -> str:
    s = (s or "").replace("\n", " ").strip()
    return s[:n] + "…" if len(s) > n else s


class _ErrorHandlingGroup(click.Group):
    """存储/导入等业务错误统一输出 [ERROR] 并以 1 退出"""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except PaperCutError as e:
            log.debug("命令失败", exc_info=True)
            click.echo(f"[ERROR] {e}", err=True)
            ctx.exit(1)


def _sync(ctx) -> RepositorySynchronizer:
    """首次使用时打开存储，命令结束时关闭"""
    if "sync" not in ctx.obj:
        ensure_sqlite_dir(ctx.obj["db_url"])
        store = RecordStore(ctx.obj["db_url"]).open()
        ctx.call_on_close(store.close)
        ctx.obj["sync"] = RepositorySynchronizer(store)
    return ctx.obj["sync"]


@click.group(cls=_ErrorHandlingGroup)
@click.option("-c", "--config", "config_path", default="config.yaml", help="配置文件路径")
@click.option("--db-url", default=None, help="数据库连接字符串（默认读取配置 database.url）")
@click.option("-v", "--verbose", is_flag=True, help="输出调试日志")
@click.version_option(version=__version__, prog_name="papercut-toolkit")
@click.pass_context
def cli(ctx, config_path, db_url, verbose):
    """试题截图题库：规则打标签、智能文件夹、备份导入导出"""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)
    ctx.obj["db_url"] = resolve_db_url(ctx.obj["config"], db_url)


@cli.command()
@click.option("-s", "--subject", default=None, help="只统计指定科目")
@click.option("--full", is_flag=True, help="显示全部 topic")
@click.pass_context
def info(ctx, subject, full):
    """查看科目列表与题库统计"""
    sync = _sync(ctx)
    store = sync.store

    if subject:
        questions = sync.questions(subject)
    else:
        questions = store.all(QUESTIONS)
        subjects = store.subjects()
        click.echo(f"科目 ({len(subjects)} 个):")
        for name in subjects:
            n_q = len(store.get_all_by_subject(QUESTIONS, name))
            n_t = len(store.get_all_by_subject(TOPICS, name))
            n_f = len(store.get_all_by_subject(FOLDERS, name))
            click.echo(f"  {name:<24} {n_q:>5} 题  {n_t:>3} 条规则  {n_f:>3} 个文件夹")

    if questions:
        print_summary(questions, full=full)
    else:
        click.echo("题库为空。")


@cli.command("sync")
@click.option("-s", "--subject", "subjects", multiple=True, help="要重算的科目（默认全部）")
@click.pass_context
def sync_cmd(ctx, subjects):
    """按当前规则重算题目 topics"""
    sync = _sync(ctx)
    subjects = list(subjects) or sync.store.subjects()
    for subject in subjects:
        report = sync.sync_subject(subject)
        click.echo(
            f"🔄 {subject}: 规则 {report.rules} 条, 题目 {report.scanned} 道, 变更 {report.changed} 道"
        )
    click.echo("✅ 同步完成")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_cmd(ctx, path):
    """导入 JSON / zip 备份（按 id 覆盖）"""
    questions = load_backup(Path(path))
    if not questions:
        click.echo("备份中没有题目。")
        return
    count = _sync(ctx).import_questions(questions)
    click.echo(f"✅ 已导入 {count} 道题")


@cli.command()
@click.option("-o", "--output", default="./data/output/papercut_backup", help="输出路径")
@click.option("-s", "--subject", default=None, help="只导出指定科目")
@click.option("--folder", "folder_ids", multiple=True, help="只导出指定文件夹（可多选，取并集）")
@click.option("--zip", "bundle", is_flag=True, help="按科目拆分并打包为 zip")
@click.pass_context
def export(ctx, output, subject, folder_ids, bundle):
    """导出题目备份"""
    sync = _sync(ctx)
    store = sync.store

    if folder_ids:
        folders = [store.get(FOLDERS, fid) for fid in folder_ids]
        pool = store.all(QUESTIONS)
        if subject:
            pool = [q for q in pool if q.subject == subject]
        questions = resolve_many(folders, newest_first(pool))
    elif subject:
        questions = sync.questions(subject)
    else:
        questions = newest_first(store.all(QUESTIONS))

    if not questions:
        click.echo("没有可导出的题目。")
        return
    fp = save_backup(questions, Path(output), bundle=bundle)
    click.echo(f"✅ 已导出 {len(questions)} 道题: {fp}")


@cli.command()
@click.argument("term")
@click.option("-s", "--subject", default=None, help="限定科目")
@click.option("--folder", "folder_id", default=None, help="限定文件夹")
@click.option("--limit", default=20, type=int, help="最多显示多少题（0=全部）")
@click.pass_context
def search(ctx, term, subject, folder_id, limit):
    """在科目、关键词、topic、OCR 文本中搜索"""
    sync = _sync(ctx)
    if folder_id:
        pool = sync.folder_questions(folder_id)
    elif subject:
        pool = sync.questions(subject)
    else:
        pool = newest_first(sync.store.all(QUESTIONS))

    results = search_questions(pool, term)
    click.echo(f"🔎 找到 {len(results)} 道题")
    show = results if limit == 0 else results[:limit]
    for q in show:
        tags = ", ".join([*q.keywords, *q.topics]) or "-"
        click.echo(f"  [{q.id}] {q.subject} {q.year} {q.month} {q.paper_type} Q{q.question_number}  {tags}")
        if q.ocr_text:
            click.echo(f"      {_trunc(q.ocr_text, 80)}")
    if limit and len(results) > limit:
        click.echo(f"  … 还有 {len(results) - limit} 道，用 --limit 0 显示全部")


@cli.command()
@click.option("-s", "--subject", required=True, help="科目")
@click.pass_context
def topics(ctx, subject):
    """列出科目下的 topic 规则"""
    rules = _sync(ctx).rules(subject)
    if not rules:
        click.echo("该科目还没有规则。")
        return
    for r in rules:
        click.echo(f"  [{r.id}] {r.name}")
        click.echo(f"      关键词: {', '.join(r.trigger_keywords) or '-'}")
        click.echo(f"      OCR 短语: {', '.join(r.trigger_ocr_phrases) or '-'}")


@cli.command("add-topic")
@click.option("-s", "--subject", required=True, help="科目")
@click.option("-n", "--name", required=True, help="规则名（即打到题目上的 topic）")
@click.option("-k", "--keyword", "keywords", multiple=True, help="触发关键词（可多选）")
@click.option("-p", "--phrase", "phrases", multiple=True, help="触发 OCR 短语（可多选）")
@click.option("--reference", default="", help="参考文本，用于生成候选触发词")
@click.option("--id", "topic_id", default=None, help="编辑已有规则时指定 id")
@click.pass_context
def add_topic(ctx, subject, name, keywords, phrases, reference, topic_id):
    """新建或编辑规则，随后整科重算"""
    sync = _sync(ctx)
    if topic_id:
        existing = sync.store.get(TOPICS, topic_id)
        rule = Topic(
            id=existing.id,
            subject=subject,
            name=name,
            trigger_keywords=list(keywords) or existing.trigger_keywords,
            trigger_ocr_phrases=list(phrases) or existing.trigger_ocr_phrases,
            reference_text=reference or existing.reference_text,
        )
    else:
        rule = Topic(
            id=new_id(),
            subject=subject,
            name=name,
            trigger_keywords=list(keywords),
            trigger_ocr_phrases=list(phrases),
            reference_text=reference,
        )
    if not rule.has_triggers:
        click.echo("⚠️  规则没有任何触发词，不会匹配任何题目")

    report = sync.save_topic_rule(rule)
    click.echo(f"✅ 规则已保存: {rule.name} (变更 {report.changed}/{report.scanned} 道题)")


@cli.command("remove-topic")
@click.argument("topic_id")
@click.pass_context
def remove_topic(ctx, topic_id):
    """删除规则（已打上的 topic 不会撤回）"""
    report = _sync(ctx).delete_topic_rule(topic_id)
    if report is None:
        click.echo("规则不存在，无需删除。")
    else:
        click.echo(f"✅ 规则已删除，已重算 {report.subject} 的 {report.scanned} 道题")


@cli.command()
@click.option("-s", "--subject", required=True, help="科目")
@click.pass_context
def folders(ctx, subject):
    """列出智能文件夹及题目数"""
    sync = _sync(ctx)
    items = sync.store.get_all_by_subject(FOLDERS, subject)
    if not items:
        click.echo("该科目还没有文件夹。")
        return
    counts = folder_counts(items, sync.store.get_all_by_subject(QUESTIONS, subject))
    for f in sorted(items, key=lambda f: f.name.casefold()):
        rule = "未分类" if f.filter_uncategorized else (", ".join(f.filter_topics) or "全部")
        click.echo(f"  [{f.id}] {f.name:<20} {counts[f.id]:>5} 题  ({rule})")


@cli.command("add-folder")
@click.option("-s", "--subject", required=True, help="科目")
@click.option("-n", "--name", required=True, help="文件夹名")
@click.option("-t", "--topic", "topic_names", multiple=True, help="包含的 topic（可多选，OR）")
@click.option("--uncategorized", is_flag=True, help="只包含没有 topic 的题")
@click.pass_context
def add_folder(ctx, subject, name, topic_names, uncategorized):
    """新建智能文件夹"""
    folder = Folder(
        id=new_id(),
        subject=subject,
        name=name.strip(),
        filter_topics=list(topic_names),
        filter_uncategorized=uncategorized,
    )
    _sync(ctx).store.put(folder)
    click.echo(f"✅ 文件夹已创建: {folder.name} [{folder.id}]")


@cli.command("remove-folder")
@click.argument("folder_id")
@click.pass_context
def remove_folder(ctx, folder_id):
    """删除智能文件夹（题目不受影响）"""
    folder = _sync(ctx).delete_folder(folder_id)
    if folder is None:
        click.echo("文件夹不存在，无需删除。")
    else:
        click.echo(f"✅ 文件夹已删除: {folder.name}")


@cli.command()
@click.argument("text")
@click.option("-s", "--subject", required=True, help="科目（用于挑选 few-shot 示例）")
@click.option("--provider", default="", help="AI provider: endpoint/openai/gemini/deepseek/ollama/qwen")
@click.option("--endpoint", default="", help="provider=endpoint 时的接口地址")
@click.option("--model", default="", help="模型名")
@click.option("--api-key", default="", envvar="OPENAI_API_KEY", help="API Key（也可用环境变量 OPENAI_API_KEY）")
@click.pass_context
def suggest(ctx, text, subject, provider, endpoint, model, api_key):
    """为一段 OCR 文本预览关键词建议（不写入题库）"""
    ai_cfg = ai_settings(
        ctx.obj["config"], provider=provider, endpoint=endpoint, model=model, api_key=api_key,
    )
    suggester = make_suggester(ai_cfg)
    examples = _sync(ctx).few_shot_examples(subject)
    keywords = suggester.suggest_keywords(text, subject, examples)
    if keywords:
        click.echo("💡 " + ", ".join(keywords))
    else:
        click.echo("没有可用的建议。")


@cli.command()
@click.argument("text", required=False, default="")
@click.option("--topic", "topic_id", default=None, help="使用已有规则的参考文本")
@click.pass_context
def triggers(ctx, text, topic_id):
    """根据参考文本本地提取候选触发词"""
    if topic_id:
        s = suggest_for_topic(_sync(ctx).store.get(TOPICS, topic_id))
    elif text:
        s = extract_triggers(text)
    else:
        raise click.UsageError("必须提供 TEXT 或 --topic")

    click.echo(f"关键词: {', '.join(s.trigger_keywords) or '-'}")
    click.echo(f"OCR 短语: {', '.join(s.trigger_ocr_phrases) or '-'}")
    click.echo(f"置信度: {s.confidence:.2f}")


def main():
    cli()


if __name__ == "__main__":
    main()
