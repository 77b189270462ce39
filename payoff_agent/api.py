from datetime import date, datetime, timezone
from io import BytesIO
from typing import Annotated, Iterator, List, Optional
import zipfile

import httpx
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from payoff_agent.calculator import MortgageSnapshot, PaymentRecord, ScenarioResult, analyze
from payoff_agent.config import ServiceConfig
from payoff_agent.exceptions import ConfigurationError, UpstreamError
from payoff_agent.interpreter import describe_extra_payment, interpret
from payoff_agent.logging import get_logger, setup_logging
from payoff_agent.upstream import request_completion


CONFIG = ServiceConfig.from_env()
setup_logging(CONFIG.log_level, CONFIG.log_format)
logger = get_logger(__name__)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
        if candidate:
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return get_remote_address(request)


limiter = Limiter(key_func=_client_ip, default_limits=[CONFIG.rate_limit_default])

app = FastAPI(
    title="Payoff Agent",
    description="Mortgage prepayment what-if calculator and assistant.",
    version="0.2.0",
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


def get_config() -> ServiceConfig:
    return CONFIG


def get_today() -> date:
    # 唯一读取系统时钟的地方；测试中可覆盖
    return date.today()


def get_http_client() -> Iterator[httpx.Client]:
    with httpx.Client() as client:
        yield client


def require_api_key(request: Request, config: ServiceConfig = Depends(get_config)):
    if not config.api_key:
        return
    provided = request.headers.get("x-api-key")
    if not provided or provided != config.api_key:
        raise HTTPException(status_code=401, detail="invalid or missing api key")


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})


def _parse_start_date(value):
    # 前端传的是 toISOString() 结果（带时间），只取日期部分
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


StartDate = Annotated[date, BeforeValidator(_parse_start_date)]


class LoanFields(BaseModel):
    principal: float = Field(..., gt=0, le=CONFIG.max_principal, description="贷款本金（美元）")
    annual_rate: float = Field(..., gt=0, le=CONFIG.max_annual_rate, description="年利率百分比，例如 6.5")
    term_years: int = Field(..., gt=0, le=CONFIG.max_term_years, description="贷款年限（年），例如 30")
    start_date: Optional[StartDate] = Field(None, description="贷款开始日期，未填视为测算日")


class ScenarioRequest(LoanFields):
    additional_payment: float = Field(0.0, ge=0, le=CONFIG.max_principal, description="每月额外还款（美元）")
    as_of: Optional[date] = Field(None, description="测算日期，未填为今天")
    include_schedules: bool = Field(True, description="是否返回逐月明细")


class PaymentRow(BaseModel):
    payment_number: int
    date: date
    payment_amount: float
    principal_portion: float
    interest_portion: float
    remaining_balance: float


class ScenarioResponse(BaseModel):
    monthly_payment: float
    baseline_total_interest: float
    accelerated_total_interest: float
    interest_saved: float
    months_saved: int
    baseline_payoff_date: date
    accelerated_payoff_date: date
    current_balance: float
    remaining_term_years: float
    payments_already_made: int
    is_already_paid_off: bool
    as_of: date
    baseline_payments: int
    accelerated_payments: int
    baseline_schedule: Optional[List[PaymentRow]] = None
    accelerated_schedule: Optional[List[PaymentRow]] = None


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, description="自然语言问题")
    loan: Optional[ScenarioRequest] = Field(None, description="当前贷款信息；为空时只返回帮助语")
    as_of: Optional[date] = Field(None, description="测算日期，未填为今天")


class QueryResponse(BaseModel):
    response: str


class MortgageData(BaseModel):
    # /api/chat 的请求体沿用前端的驼峰字段
    model_config = ConfigDict(populate_by_name=True)

    principal: float = Field(..., gt=0, le=CONFIG.max_principal)
    rate: float = Field(..., gt=0, le=CONFIG.max_annual_rate)
    term: int = Field(..., gt=0, le=CONFIG.max_term_years)
    additional_payment: float = Field(0.0, ge=0, le=CONFIG.max_principal, alias="additionalPayment")
    start_date: StartDate = Field(..., alias="startDate")

    def to_snapshot(self) -> MortgageSnapshot:
        return MortgageSnapshot(
            principal=self.principal,
            annual_rate=self.rate,
            term_years=self.term,
            start_date=self.start_date,
            additional_payment=self.additional_payment,
        )


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_query: Optional[str] = Field(None, alias="userQuery")
    mortgage_data: Optional[MortgageData] = Field(None, alias="mortgageData")

    @field_validator("mortgage_data", mode="wrap")
    @classmethod
    def _drop_invalid_mortgage_data(cls, value, handler):
        # 贷款信息不完整或越界时按未提供处理，照常回答，只是不附加计算结果
        try:
            return handler(value)
        except ValidationError as e:
            logger.warning("Ignoring invalid mortgageData: %d error(s)", e.error_count())
            return None


class ChatResponse(BaseModel):
    response: str
    tokens: int
    model: str


def _to_snapshot(body: ScenarioRequest, as_of: date) -> MortgageSnapshot:
    return MortgageSnapshot(
        principal=body.principal,
        annual_rate=body.annual_rate,
        term_years=body.term_years,
        start_date=body.start_date or as_of,
        additional_payment=body.additional_payment,
    )


def _rows(schedule: List[PaymentRecord]) -> List[PaymentRow]:
    return [
        PaymentRow(
            payment_number=row.payment_number,
            date=row.date,
            payment_amount=row.payment_amount,
            principal_portion=row.principal_portion,
            interest_portion=row.interest_portion,
            remaining_balance=row.remaining_balance,
        )
        for row in schedule
    ]


def _scenario_response(result: ScenarioResult, include_schedules: bool) -> ScenarioResponse:
    return ScenarioResponse(
        monthly_payment=result.monthly_payment,
        baseline_total_interest=result.baseline_total_interest,
        accelerated_total_interest=result.accelerated_total_interest,
        interest_saved=result.interest_saved,
        months_saved=result.months_saved,
        baseline_payoff_date=result.baseline_payoff_date,
        accelerated_payoff_date=result.accelerated_payoff_date,
        current_balance=result.current_balance,
        remaining_term_years=result.remaining_term_years,
        payments_already_made=result.payments_already_made,
        is_already_paid_off=result.is_already_paid_off,
        as_of=result.as_of,
        baseline_payments=len(result.baseline_schedule),
        accelerated_payments=len(result.accelerated_schedule),
        baseline_schedule=_rows(result.baseline_schedule) if include_schedules else None,
        accelerated_schedule=_rows(result.accelerated_schedule) if include_schedules else None,
    )


@app.get("/api/health", tags=["health"])
@limiter.exempt
def health(config: ServiceConfig = Depends(get_config)) -> dict:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "openaiConfigured": config.openai_configured,
    }


@app.post(
    "/api/chat",
    tags=["assistant"],
    responses={400: {"description": "Missing user query"}, 500: {"description": "Upstream unavailable"}},
)
@limiter.limit(CONFIG.rate_limit_default)
def chat(
    request: Request,
    body: ChatRequest,
    config: ServiceConfig = Depends(get_config),
    client: httpx.Client = Depends(get_http_client),
    today: date = Depends(get_today),
):
    query = (body.user_query or "").strip()
    snapshot = body.mortgage_data.to_snapshot() if body.mortgage_data else None
    logger.info("Chat request query_chars=%d has_mortgage=%s", len(query), snapshot is not None)

    if not query:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing user query", "message": "Please provide a question."},
        )

    try:
        completion = request_completion(query, snapshot, config=config, client=client)
    except ConfigurationError:
        logger.error("OpenAI API key not configured. Please check your environment variables.")
        return JSONResponse(
            status_code=500,
            content={
                "error": "OpenAI API key not configured",
                "message": "OpenAI is not available. Please try again later.",
            },
        )
    except UpstreamError as e:
        logger.warning("OpenAI API failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={
                "error": "OpenAI API failed",
                "message": "Sorry, I encountered an error processing your request. Please try again.",
                "details": str(e),
            },
        )

    text = completion.text
    # 问题里带金额且提到 add/extra 时，附上本地精确计算结果
    extra_line = None
    if snapshot is not None:
        try:
            extra_line = describe_extra_payment(query, snapshot, as_of=today)
        except ArithmeticError as e:
            # 金额大到无法计算或格式化时，只返回模型的回答
            logger.warning("Skipping extra payment calculation: %s", e)
    if extra_line:
        text += f"\n\n{extra_line}"

    logger.info("Chat response chars=%d tokens=%d model=%s", len(text), completion.tokens, completion.model)
    return ChatResponse(response=text, tokens=completion.tokens, model=completion.model)


@app.post(
    "/v1/mortgages/scenario:calc",
    tags=["mortgage"],
    responses={413: {"description": "Schedule too large"}},
)
@limiter.limit(CONFIG.rate_limit_default)
def calc_scenario(
    request: Request,
    body: ScenarioRequest,
    _=Depends(require_api_key),
    config: ServiceConfig = Depends(get_config),
    today: date = Depends(get_today),
) -> ScenarioResponse:
    as_of = body.as_of or today
    result = analyze(_to_snapshot(body, as_of), body.additional_payment, as_of=as_of)

    if body.include_schedules:
        _ensure_row_limit(len(result.baseline_schedule), "baseline_schedule", config)
        _ensure_row_limit(len(result.accelerated_schedule), "accelerated_schedule", config)

    return _scenario_response(result, body.include_schedules)


@app.post(
    "/v1/mortgages/scenario:export-xlsx",
    tags=["mortgage"],
    responses={413: {"description": "Export too large"}},
)
@limiter.limit(CONFIG.rate_limit_export)
def export_scenario(
    request: Request,
    body: ScenarioRequest,
    _=Depends(require_api_key),
    config: ServiceConfig = Depends(get_config),
    today: date = Depends(get_today),
):
    """导出两份还款明细（原月供 / 追加还款）打包为 ZIP。"""
    as_of = body.as_of or today
    result = analyze(_to_snapshot(body, as_of), body.additional_payment, as_of=as_of)

    _ensure_row_limit(len(result.baseline_schedule), "baseline_schedule", config)
    _ensure_row_limit(len(result.accelerated_schedule), "accelerated_schedule", config)

    zip_buf = BytesIO()
    with zipfile.ZipFile(zip_buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("baseline_schedule.xlsx", _schedule_to_xlsx(result.baseline_schedule, "Baseline"))
        zf.writestr("accelerated_schedule.xlsx", _schedule_to_xlsx(result.accelerated_schedule, "Accelerated"))
    zip_bytes = zip_buf.getvalue()
    _ensure_export_size(len(zip_bytes), config)

    return StreamingResponse(
        BytesIO(zip_bytes),
        media_type="application/zip",
        headers={
            "Content-Disposition": "attachment; filename=payoff_schedules.zip",
            "X-Interest-Saved": f"{float(result.interest_saved):.2f}",
            "X-Months-Saved": str(result.months_saved),
        },
    )


@app.post("/v1/mortgages/query:interpret", tags=["assistant"])
@limiter.limit(CONFIG.rate_limit_default)
def interpret_query(
    request: Request,
    body: QueryRequest,
    _=Depends(require_api_key),
    today: date = Depends(get_today),
) -> QueryResponse:
    as_of = body.as_of or today
    snapshot = _to_snapshot(body.loan, as_of) if body.loan else None
    return QueryResponse(response=interpret(body.query, snapshot, as_of=as_of))


def _schedule_to_xlsx(schedule: List[PaymentRecord], title: str) -> bytes:
    """将还款明细导出为 Excel（xlsx），返回二进制。"""
    wb = Workbook()
    ws = wb.active
    ws.title = title

    headers = ["Payment #", "Date", "Payment", "Principal", "Interest", "Balance", "Interest share"]
    ws.append(headers)

    header_font = Font(bold=True, name="Arial", size=11, color="FFFFFF")
    body_font = Font(name="Arial", size=10)
    header_fill = PatternFill("solid", fgColor="0F172A")
    alt_fill = PatternFill("solid", fgColor="F8FAFC")
    border = Border(bottom=Side(style="thin", color="E2E8F0"))
    align_right = Alignment(horizontal="right")
    align_center = Alignment(horizontal="center")

    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = align_center

    for idx, row in enumerate(schedule, start=2):
        ratio = (row.interest_portion / row.payment_amount) if row.payment_amount else 0.0
        ws.append([
            row.payment_number,
            row.date.isoformat(),
            round(row.payment_amount, 2),
            round(row.principal_portion, 2),
            round(row.interest_portion, 2),
            round(row.remaining_balance, 2),
            f"{ratio*100:.2f}%",
        ])
        for col_idx in range(1, len(headers) + 1):
            cell = ws.cell(row=idx, column=col_idx)
            cell.font = body_font
            cell.alignment = align_right if col_idx > 2 else align_center
            if idx % 2 == 0:
                cell.fill = alt_fill
            cell.border = border
        # 利息占比过半标红
        if ratio >= 0.5:
            ws.cell(row=idx, column=len(headers)).font = Font(name="Arial", size=10, color="EF4444")

    widths = [10, 12, 14, 14, 14, 16, 14]
    for i, w in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = w

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _ensure_row_limit(rows: int, label: str, config: ServiceConfig) -> None:
    if rows > config.max_schedule_rows:
        raise HTTPException(status_code=413, detail=f"{label} too large, exceeds {config.max_schedule_rows} rows limit")


def _ensure_export_size(size_bytes: int, config: ServiceConfig) -> None:
    if size_bytes > config.max_export_bytes:
        raise HTTPException(status_code=413, detail="export file too large")
