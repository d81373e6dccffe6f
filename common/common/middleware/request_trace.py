import logging
import time
import uuid
from urllib.parse import parse_qs

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


REQUEST_ID_HEADER = "X-Request-Id"
SPAN_ID_HEADER = "X-Span-Id"
USER_ID_HEADER = "X-User-Id"

# 노이즈를 줄이기 위해 로그에서 제외할 엔드포인트 경로 목록
IGNORED_LOG_PATHS: set[str] = {"/health"}


class RequestTraceMiddleware(BaseHTTPMiddleware):
    """공통 Request/Span ID 로그 미들웨어.

    - X-Request-Id, X-Span-Id 를 읽고, 없으면 request_id 만 새로 생성한다.
    - request.state 에 request_id, span_id 를 저장하고 응답 헤더에도 설정한다.
    - Gateway 가 넘겨준 X-User-Id 를 로그에 남긴다.
    - 기프트카드 코드는 곧 결제 수단이므로 요청 바디는 로그에 남기지 않는다.
    """

    def __init__(self, app, logger: logging.Logger | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self._logger = logger or logging.getLogger("request_trace")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        span_id = request.headers.get(SPAN_ID_HEADER) or "0"

        request.state.request_id = request_id
        request.state.span_id = span_id

        should_log = request.url.path not in IGNORED_LOG_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    "request failed",
                    extra=self._build_log_extra(
                        request,
                        request_id,
                        span_id,
                        duration=time.monotonic() - start,
                    ),
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        response.headers.setdefault(SPAN_ID_HEADER, span_id)

        if should_log:
            self._logger.info(
                "completed request",
                extra=self._build_log_extra(
                    request,
                    request_id,
                    span_id,
                    status=response.status_code,
                    duration=time.monotonic() - start,
                ),
            )

        return response

    def _build_log_extra(
        self,
        request: Request,
        request_id: str,
        span_id: str,
        status: int | None = None,
        duration: float | None = None,
    ) -> dict[str, object]:
        extra: dict[str, object] = {
            "request_id": request_id,
            "span_id": span_id,
            "method": request.method,
            "path": request.url.path,
        }

        user_id = request.headers.get(USER_ID_HEADER)
        if user_id:
            extra["user_id"] = user_id

        query = request.url.query
        if query:
            parsed = parse_qs(query, keep_blank_values=True)
            if parsed:
                extra["query_params"] = {
                    key: values[0] if len(values) == 1 else values
                    for key, values in parsed.items()
                }

        if status is not None:
            extra["status"] = status

        if duration is not None:
            extra["duration"] = f"{duration * 1000:.3f}ms"

        return extra
