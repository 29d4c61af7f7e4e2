# rvz_converter/batch.py
"""
Runs the conversion jobs one at a time: convert, verify, then decide what
happens to the source and the output.

Job states:
    Pending -> Converting -> ConversionFailed
                          -> Verifying -> VerificationFailed
                                       -> Success
"""

import os
from collections import namedtuple

from rvz_converter import config
from rvz_converter import conversions
from rvz_converter import utils
from rvz_converter.errors import DisposalFailed

# --- Job states ---
PENDING = "Pending"
CONVERTING = "Converting"
VERIFYING = "Verifying"

# --- Terminal states (outcomes) ---
SUCCESS = "Success"
CONVERSION_FAILED = "ConversionFailed"
VERIFICATION_FAILED = "VerificationFailed"
OUTCOMES = (SUCCESS, CONVERSION_FAILED, VERIFICATION_FAILED)

ConversionJob = namedtuple("ConversionJob", ["source_path", "output_path"])


def job_for_source(source_path, target_format=config.TARGET_FORMAT):
    source_path = os.path.abspath(source_path)
    return ConversionJob(source_path, utils.derive_output_path(source_path, target_format))


def next_state(state, result=None):
    """Pure transition function. result is the ProcessResult of the stage that just ran."""
    if state == PENDING:
        return CONVERTING
    if state == CONVERTING:
        # Any nonzero code is a failure; codes are not told apart.
        return VERIFYING if result.exit_code == 0 else CONVERSION_FAILED
    if state == VERIFYING:
        return SUCCESS if conversions.verification_passed(result) else VERIFICATION_FAILED
    raise ValueError(f"No transition out of state '{state}'")


def disposal_plan(job, outcome, trash_on_success, output_exists):
    """
    Returns the single (path, reason) pair to send to trash for this outcome, or None.
    A failed job never disposes of its source.
    """
    if outcome == SUCCESS:
        if trash_on_success:
            return job.source_path, utils.TRASH_CONVERTED_SOURCE
        return None
    if outcome in (CONVERSION_FAILED, VERIFICATION_FAILED):
        if output_exists:
            return job.output_path, utils.DISCARD_FAILED_ARTIFACT
        return None
    raise ValueError(f"'{outcome}' is not an outcome")


class JobReport:
    def __init__(self, job):
        self.job = job
        self.outcome = None
        self.skipped = False
        self.disposed = None
        self.errors = []

    @property
    def succeeded(self):
        return self.outcome == SUCCESS

    def __repr__(self):
        status = "Skipped" if self.skipped else self.outcome
        return f"JobReport({os.path.basename(self.job.source_path)!r}, {status})"


class BatchSummary:
    def __init__(self):
        self.reports = []

    def add(self, report):
        self.reports.append(report)

    @property
    def succeeded(self):
        return sum(1 for r in self.reports if r.outcome == SUCCESS)

    @property
    def failed(self):
        return sum(1 for r in self.reports if r.outcome in (CONVERSION_FAILED, VERIFICATION_FAILED))

    @property
    def skipped(self):
        return sum(1 for r in self.reports if r.skipped)

    @property
    def disposal_errors(self):
        return sum(len(r.errors) for r in self.reports)

    @property
    def ok(self):
        return self.failed == 0 and self.disposal_errors == 0


class RunContext:
    """
    Everything a run needs: validated settings, the operator prompt,
    the tool invoker and the output sink (None prints to the console).
    """
    def __init__(self, settings, confirmer, invoker=None, output_signal=None):
        self.settings = settings
        self.confirmer = confirmer
        self.output_signal = output_signal
        self.invoker = invoker or conversions.DolphinToolInvoker(settings.TOOL_PATH, output_signal=output_signal)
        self.compression = conversions.compression_from_settings(settings)

    def emit(self, message, **kwargs):
        utils.emit_or_print(message, self.output_signal, **kwargs)


def _may_overwrite(ctx, job):
    name = os.path.basename(job.output_path)
    if ctx.settings.CONFIRM_OVERWRITE:
        if ctx.confirmer.confirm(f"Output \"{name}\" already exists. Overwrite?", default_yes=False):
            return True
        ctx.emit(f"Keeping existing \"{name}\", skipping \"{os.path.basename(job.source_path)}\".", type="WARN")
        return False
    if ctx.settings.ALLOW_OVERWRITE:
        ctx.emit(f"WARNING: \"{name}\" exists. Overwriting.", type="WARN")
        return True
    ctx.emit(f"\"{name}\" exists and overwrite is off. Skipping.", type="WARN")
    return False


def _warn_if_low_disk_space(ctx, job):
    if not os.path.isfile(job.source_path):
        return  # the invoker reports this
    free_gb = utils.get_free_disk_space_gb(os.path.dirname(job.output_path))
    source_gb = os.path.getsize(job.source_path) / (1024**3)
    if free_gb is not None and free_gb < source_gb:
        ctx.emit(f"WARNING: Only {free_gb:.2f} GB free for \"{os.path.basename(job.output_path)}\" "
                 f"(source is {source_gb:.2f} GB).", type="WARN")


def _report_failure(ctx, job, outcome, result):
    stage = "Conversion" if outcome == CONVERSION_FAILED else "Verification"
    ctx.emit(f"ERROR: {stage} failed for \"{os.path.basename(job.source_path)}\" (code {result.exit_code})",
             is_error=True)
    ctx.emit(f"--- STDOUT ---\n{result.stdout or '(empty)'}\n--------------", is_error=True)
    ctx.emit(f"--- STDERR ---\n{result.stderr or '(empty)'}\n--------------", is_error=True)


def process_job(ctx, job):
    """
    Runs one job to a terminal state and applies the disposal policy.
    ToolNotFound and SourceNotFound propagate; DisposalFailed is recorded on the report.
    """
    report = JobReport(job)
    ctx.emit(f"\n>> Processing: \"{job.source_path}\"", fallback_color_code="cyan")

    if os.path.exists(job.output_path) and not _may_overwrite(ctx, job):
        report.skipped = True
        return report

    _warn_if_low_disk_space(ctx, job)

    state = next_state(PENDING)
    result = ctx.invoker.convert(job, ctx.compression)
    state = next_state(state, result)
    if state == VERIFYING:
        result = ctx.invoker.verify(job.output_path)
        state = next_state(state, result)
    report.outcome = state

    if state == SUCCESS:
        ctx.emit(f"\"{os.path.basename(job.output_path)}\" converted and verified.", type="SUCCESS")
    else:
        _report_failure(ctx, job, state, result)

    plan = disposal_plan(job, state, ctx.settings.TRASH_ON_SUCCESS, os.path.exists(job.output_path))
    if plan:
        path, reason = plan
        try:
            utils.send_to_trash(path, reason, ctx.output_signal)
            report.disposed = path
        except DisposalFailed as e:
            report.errors.append(str(e))
            ctx.emit(f"ERROR: {e}", is_error=True)
    return report


def discover_jobs(settings):
    sources = utils.find_source_files(settings.INPUT_ROOT, settings.RECURSE, config.SOURCE_EXTENSION)
    return (job_for_source(path) for path in sources)


def run_batch(ctx, jobs=None):
    """Processes every job in order. A failed job never stops the run."""
    if jobs is None:
        jobs = discover_jobs(ctx.settings)

    summary = BatchSummary()
    for job in jobs:
        summary.add(process_job(ctx, job))

    color = "green" if summary.ok else "yellow"
    ctx.emit(f"\nDone. {summary.succeeded} converted, {summary.failed} failed, "
             f"{summary.skipped} skipped, {summary.disposal_errors} trash errors.",
             fallback_color_code=color)
    return summary
