"""
BigQuery storage layer for briefs, generated content and integration audit.

Tables (dataset settings.BQ_DATASET):
  content_briefs, generated_content, clients, competitors, client_access,
  integration_health, api_request_logs, competitive_analysis, ai_citations,
  content_quality_analysis.

The client library is blocking, so every query runs in a worker thread.
"""
import asyncio
import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from google.cloud import bigquery

from config.settings import settings
from models.schemas import (
    ApiRequestLog,
    BriefRequirements,
    ClientProfile,
    CompetitiveAnalysisRecord,
    Competitor,
    ContentBrief,
    GeneratedContent,
    IntegrationHealthRecord,
    QualityAnalysis,
)

logger = logging.getLogger(__name__)

QueryParameter = Union[bigquery.ScalarQueryParameter, bigquery.ArrayQueryParameter]

# Columns the workflow is allowed to update, with their BigQuery types.
BRIEF_UPDATABLE = {
    "status": "STRING",
    "approved_at": "TIMESTAMP",
    "approved_by": "STRING",
}
CONTENT_UPDATABLE = {
    "status": "STRING",
    "reviewed_at": "TIMESTAMP",
    "reviewer_notes": "STRING",
    "human_review_time_minutes": "INT64",
    "revision_requests": "ARRAY<STRING>",
    "approved_at": "TIMESTAMP",
    "quality_score": "FLOAT64",
    "readability_score": "FLOAT64",
    "authority_score": "FLOAT64",
    "optimization_score": "FLOAT64",
}


def _param(name: str, bq_type: str, value: Any) -> QueryParameter:
    if isinstance(value, Enum):
        value = value.value
    if bq_type == "ARRAY<STRING>":
        return bigquery.ArrayQueryParameter(name, "STRING", list(value or []))
    return bigquery.ScalarQueryParameter(name, bq_type, value)


def _set_clauses(
    updates: dict[str, Any], columns: dict[str, str], prefix: str
) -> tuple[list[str], list[QueryParameter]]:
    """Build "col = @param" clauses for a whitelisted set of columns."""
    clauses: list[str] = []
    params: list[QueryParameter] = []
    for column, value in updates.items():
        if column not in columns:
            raise ValueError(f"Column '{column}' is not updatable")
        name = f"{prefix}_{column}"
        clauses.append(f"{column} = @{name}")
        params.append(_param(name, columns[column], value))
    return clauses, params


class BigQueryStore:
    """ContentStore implementation backed by BigQuery."""

    def __init__(
        self,
        client: Optional[bigquery.Client] = None,
        project: str = settings.GCP_PROJECT,
        dataset: str = settings.BQ_DATASET,
        down_threshold: int = settings.HEALTH_DOWN_THRESHOLD,
    ) -> None:
        self._client = client
        self.project = project
        self.dataset = dataset
        self.down_threshold = down_threshold

    @property
    def client(self) -> bigquery.Client:
        """BigQuery client using default credentials, created on first use."""
        if self._client is None:
            self._client = bigquery.Client(project=self.project)
        return self._client

    def table(self, name: str) -> str:
        return f"{self.project}.{self.dataset}.{name}"

    def _run(self, query: str, params: list[QueryParameter]) -> list[dict]:
        job_config = bigquery.QueryJobConfig(query_parameters=params)
        rows = self.client.query(query, job_config=job_config).result()
        return [dict(row.items()) for row in rows]

    async def _query(
        self, query: str, params: Optional[list[QueryParameter]] = None
    ) -> list[dict]:
        try:
            return await asyncio.to_thread(self._run, query, params or [])
        except Exception as e:
            logger.error(f"BigQuery query failed: {e}", exc_info=True)
            raise

    async def _insert_rows(self, table: str, rows: list[dict]) -> None:
        errors = await asyncio.to_thread(
            self.client.insert_rows_json, self.table(table), rows
        )
        if errors:
            logger.error(f"BigQuery insert errors on {table}: {errors}")
            raise RuntimeError(f"Failed to insert into {table}: {errors}")

    # --- Briefs ---

    async def get_brief(self, brief_id: str) -> Optional[ContentBrief]:
        rows = await self._query(
            f"SELECT * FROM `{self.table('content_briefs')}` WHERE id = @brief_id LIMIT 1",
            [bigquery.ScalarQueryParameter("brief_id", "STRING", brief_id)],
        )
        return _row_to_brief(rows[0]) if rows else None

    async def list_briefs(
        self, client_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[ContentBrief]:
        where: list[str] = []
        params: list[QueryParameter] = []
        if client_id:
            where.append("client_id = @client_id")
            params.append(bigquery.ScalarQueryParameter("client_id", "STRING", client_id))
        if status:
            where.append("status = @status")
            params.append(bigquery.ScalarQueryParameter("status", "STRING", status))

        query = f"SELECT * FROM `{self.table('content_briefs')}`"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC"

        rows = await self._query(query, params)
        return [_row_to_brief(row) for row in rows]

    async def count_briefs_by_status(self, client_id: str) -> dict[str, int]:
        rows = await self._query(
            f"""
            SELECT status, COUNT(*) AS n
            FROM `{self.table('content_briefs')}`
            WHERE client_id = @client_id
            GROUP BY status
            """,
            [bigquery.ScalarQueryParameter("client_id", "STRING", client_id)],
        )
        return {row["status"]: row["n"] for row in rows}

    async def update_brief(self, brief_id: str, updates: dict[str, Any]) -> None:
        clauses, params = _set_clauses(updates, BRIEF_UPDATABLE, "brief")
        params.append(bigquery.ScalarQueryParameter("brief_id", "STRING", brief_id))
        await self._query(
            f"""
            UPDATE `{self.table('content_briefs')}`
            SET {', '.join(clauses)}
            WHERE id = @brief_id
            """,
            params,
        )
        logger.info(f"Brief {brief_id} updated: {sorted(updates)}")

    async def insert_brief(self, brief: ContentBrief) -> str:
        # DML for the same reason as insert_content: approval updates follow.
        text_columns = (
            "id",
            "client_id",
            "title",
            "target_keyword",
            "content_type",
            "priority_level",
            "target_audience",
            "unique_angle",
            "competitive_gap",
            "authority_signals",
            "ai_citation_opportunity",
        )
        params: list[QueryParameter] = [
            bigquery.ScalarQueryParameter(column, "STRING", getattr(brief, column))
            for column in text_columns
        ]
        params += [
            bigquery.ScalarQueryParameter("status", "STRING", brief.status.value),
            bigquery.ScalarQueryParameter(
                "target_word_count", "INT64", brief.requirements.target_word_count
            ),
            _param("required_sections", "ARRAY<STRING>", brief.requirements.required_sections),
            _param("semantic_keywords", "ARRAY<STRING>", brief.requirements.semantic_keywords),
            bigquery.ScalarQueryParameter("created_at", "TIMESTAMP", brief.created_at),
        ]
        columns = [param.name for param in params]
        await self._query(
            f"""
            INSERT INTO `{self.table('content_briefs')}`
              ({', '.join(columns)})
            VALUES
              ({', '.join('@' + c for c in columns)})
            """,
            params,
        )
        logger.info(f"Brief {brief.id} stored for client {brief.client_id}")
        return brief.id

    # --- Generated content ---

    async def get_content(self, content_id: str) -> Optional[GeneratedContent]:
        rows = await self._query(
            f"SELECT * FROM `{self.table('generated_content')}` WHERE id = @content_id LIMIT 1",
            [bigquery.ScalarQueryParameter("content_id", "STRING", content_id)],
        )
        return GeneratedContent.model_validate(rows[0]) if rows else None

    async def list_content(
        self, client_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[GeneratedContent]:
        where: list[str] = []
        params: list[QueryParameter] = []
        if client_id:
            where.append("client_id = @client_id")
            params.append(bigquery.ScalarQueryParameter("client_id", "STRING", client_id))
        if status:
            where.append("status = @status")
            params.append(bigquery.ScalarQueryParameter("status", "STRING", status))

        query = f"SELECT * FROM `{self.table('generated_content')}`"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC"
        rows = await self._query(query, params)
        return [GeneratedContent.model_validate(row) for row in rows]

    async def insert_content(self, content: GeneratedContent) -> str:
        # DML rather than streaming inserts: reviews update these rows soon after.
        await self._query(
            f"""
            INSERT INTO `{self.table('generated_content')}`
              (id, brief_id, client_id, title, content, word_count,
               ai_model_used, status, created_at)
            VALUES
              (@id, @brief_id, @client_id, @title, @content, @word_count,
               @ai_model_used, @status, @created_at)
            """,
            [
                bigquery.ScalarQueryParameter("id", "STRING", content.id),
                bigquery.ScalarQueryParameter("brief_id", "STRING", content.brief_id),
                bigquery.ScalarQueryParameter("client_id", "STRING", content.client_id),
                bigquery.ScalarQueryParameter("title", "STRING", content.title),
                bigquery.ScalarQueryParameter("content", "STRING", content.content),
                bigquery.ScalarQueryParameter("word_count", "INT64", content.word_count),
                bigquery.ScalarQueryParameter(
                    "ai_model_used", "STRING", content.ai_model_used
                ),
                bigquery.ScalarQueryParameter("status", "STRING", content.status.value),
                bigquery.ScalarQueryParameter(
                    "created_at", "TIMESTAMP", content.created_at
                ),
            ],
        )
        logger.info(f"Content {content.id} stored for brief {content.brief_id}")
        return content.id

    async def update_content(self, content_id: str, updates: dict[str, Any]) -> None:
        clauses, params = _set_clauses(updates, CONTENT_UPDATABLE, "content")
        params.append(bigquery.ScalarQueryParameter("content_id", "STRING", content_id))
        await self._query(
            f"""
            UPDATE `{self.table('generated_content')}`
            SET {', '.join(clauses)}
            WHERE id = @content_id
            """,
            params,
        )

    async def update_content_for_brief(
        self, brief_id: str, updates: dict[str, Any]
    ) -> None:
        clauses, params = _set_clauses(updates, CONTENT_UPDATABLE, "content")
        params.append(bigquery.ScalarQueryParameter("brief_id", "STRING", brief_id))
        await self._query(
            f"""
            UPDATE `{self.table('generated_content')}`
            SET {', '.join(clauses)}
            WHERE brief_id = @brief_id
            """,
            params,
        )

    async def apply_review(
        self,
        content_id: str,
        content_updates: dict[str, Any],
        brief_id: Optional[str],
        brief_status: str,
    ) -> None:
        """
        Write a review and the parent brief's status in one transaction.

        Either both rows change or neither does.
        """
        clauses, params = _set_clauses(content_updates, CONTENT_UPDATABLE, "content")
        params.append(bigquery.ScalarQueryParameter("content_id", "STRING", content_id))

        statements = [
            f"UPDATE `{self.table('generated_content')}` "
            f"SET {', '.join(clauses)} WHERE id = @content_id;"
        ]
        if brief_id:
            statements.append(
                f"UPDATE `{self.table('content_briefs')}` "
                f"SET status = @brief_status WHERE id = @brief_id;"
            )
            params.append(
                bigquery.ScalarQueryParameter("brief_status", "STRING", brief_status)
            )
            params.append(bigquery.ScalarQueryParameter("brief_id", "STRING", brief_id))

        body = "\n  ".join(statements)
        script = f"""
BEGIN
  BEGIN TRANSACTION;
  {body}
  COMMIT TRANSACTION;
EXCEPTION WHEN ERROR THEN
  ROLLBACK TRANSACTION;
  RAISE USING MESSAGE = @@error.message;
END;
"""
        await self._query(script, params)
        logger.info(
            f"Review applied to content {content_id} (brief {brief_id} → {brief_status})"
        )

    # --- Clients ---

    async def get_client(self, client_id: str) -> Optional[ClientProfile]:
        rows = await self._query(
            f"SELECT * FROM `{self.table('clients')}` WHERE id = @client_id LIMIT 1",
            [bigquery.ScalarQueryParameter("client_id", "STRING", client_id)],
        )
        return _row_to_client(rows[0]) if rows else None

    async def list_clients(self) -> list[ClientProfile]:
        rows = await self._query(f"SELECT * FROM `{self.table('clients')}`")
        return [_row_to_client(row) for row in rows]

    async def list_competitors(self, client_id: str) -> list[Competitor]:
        rows = await self._query(
            f"SELECT id, client_id, domain FROM `{self.table('competitors')}` "
            "WHERE client_id = @client_id",
            [bigquery.ScalarQueryParameter("client_id", "STRING", client_id)],
        )
        return [Competitor.model_validate(row) for row in rows]

    async def user_has_client_access(self, user_id: str, client_id: str) -> bool:
        rows = await self._query(
            f"""
            SELECT COUNT(*) AS n
            FROM `{self.table('client_access')}`
            WHERE user_id = @user_id AND client_id = @client_id
            """,
            [
                bigquery.ScalarQueryParameter("user_id", "STRING", user_id),
                bigquery.ScalarQueryParameter("client_id", "STRING", client_id),
            ],
        )
        return bool(rows) and rows[0]["n"] > 0

    async def list_user_client_ids(self, user_id: str) -> list[str]:
        rows = await self._query(
            f"""
            SELECT DISTINCT client_id
            FROM `{self.table('client_access')}`
            WHERE user_id = @user_id
            ORDER BY client_id
            """,
            [bigquery.ScalarQueryParameter("user_id", "STRING", user_id)],
        )
        return [row["client_id"] for row in rows]

    # --- Observability ---

    async def insert_request_log(self, log: ApiRequestLog) -> None:
        await self._insert_rows("api_request_logs", [log.model_dump(mode="json")])

    async def record_health(
        self,
        provider: str,
        success: bool,
        response_time_ms: int,
        at: datetime,
    ) -> None:
        """
        Upsert the provider's health row in a single MERGE.

        Error count and the response-time moving average are computed by
        BigQuery from the stored row, so concurrent writers never race on a
        value read into the application.
        """
        await self._query(
            f"""
            MERGE `{self.table('integration_health')}` T
            USING (
              SELECT @provider AS provider, @success AS success,
                     @response_ms AS response_ms, @at AS at
            ) S
            ON T.provider = S.provider
            WHEN MATCHED THEN UPDATE SET
              status = IF(S.success, 'healthy',
                          IF(IFNULL(T.error_count, 0) + 1 >= @down_threshold,
                             'down', 'degraded')),
              last_success = IF(S.success, S.at, T.last_success),
              last_failure = IF(S.success, T.last_failure, S.at),
              error_count = IF(S.success, 0, IFNULL(T.error_count, 0) + 1),
              avg_response_ms = CAST(ROUND(
                IFNULL(T.avg_response_ms, S.response_ms) * 0.8
                + S.response_ms * 0.2) AS INT64),
              updated_at = S.at
            WHEN NOT MATCHED THEN INSERT
              (provider, status, last_success, last_failure, error_count,
               avg_response_ms, updated_at)
            VALUES
              (S.provider,
               IF(S.success, 'healthy',
                  IF(1 >= @down_threshold, 'down', 'degraded')),
               IF(S.success, S.at, NULL),
               IF(S.success, NULL, S.at),
               IF(S.success, 0, 1),
               S.response_ms,
               S.at)
            """,
            [
                bigquery.ScalarQueryParameter("provider", "STRING", provider),
                bigquery.ScalarQueryParameter("success", "BOOL", success),
                bigquery.ScalarQueryParameter("response_ms", "INT64", response_time_ms),
                bigquery.ScalarQueryParameter("at", "TIMESTAMP", at),
                bigquery.ScalarQueryParameter(
                    "down_threshold", "INT64", self.down_threshold
                ),
            ],
        )

    async def list_health(self) -> list[IntegrationHealthRecord]:
        rows = await self._query(
            f"SELECT * FROM `{self.table('integration_health')}` ORDER BY provider"
        )
        return [IntegrationHealthRecord.model_validate(row) for row in rows]

    # --- Competitive analysis ---

    async def insert_competitive_analysis(
        self, record: CompetitiveAnalysisRecord
    ) -> None:
        row = record.model_dump(mode="json")
        row["data"] = json.dumps(record.data)
        await self._insert_rows("competitive_analysis", [row])

    async def delete_expired_analysis(self, now: datetime) -> None:
        await self._query(
            f"DELETE FROM `{self.table('competitive_analysis')}` WHERE expires_at < @now",
            [bigquery.ScalarQueryParameter("now", "TIMESTAMP", now)],
        )

    async def list_competitive_analysis(
        self, client_id: str, now: datetime, limit: int = 5
    ) -> list[Any]:
        """Unexpired snapshots for a client, latest expiry first, data decoded."""
        rows = await self._query(
            f"""
            SELECT analysis_type, competitor_id, data
            FROM `{self.table('competitive_analysis')}`
            WHERE client_id = @client_id AND expires_at > @now
            ORDER BY expires_at DESC
            LIMIT @limit
            """,
            [
                bigquery.ScalarQueryParameter("client_id", "STRING", client_id),
                bigquery.ScalarQueryParameter("now", "TIMESTAMP", now),
                bigquery.ScalarQueryParameter("limit", "INT64", limit),
            ],
        )
        for row in rows:
            if isinstance(row.get("data"), str):
                row["data"] = json.loads(row["data"])
        return rows

    async def list_citations(self, client_id: str, limit: int = 10) -> list[Any]:
        return await self._query(
            f"""
            SELECT *
            FROM `{self.table('ai_citations')}`
            WHERE client_id = @client_id
            ORDER BY tracked_at DESC
            LIMIT @limit
            """,
            [
                bigquery.ScalarQueryParameter("client_id", "STRING", client_id),
                bigquery.ScalarQueryParameter("limit", "INT64", limit),
            ],
        )

    # --- Quality analysis ---

    async def insert_quality_analysis(self, analysis: QualityAnalysis) -> None:
        row = analysis.model_dump(mode="json")
        row["detailed_feedback"] = json.dumps(analysis.detailed_feedback)
        await self._insert_rows("content_quality_analysis", [row])


def _row_to_brief(row: dict) -> ContentBrief:
    """Convert a flat BigQuery row into a ContentBrief with nested requirements."""
    requirements = BriefRequirements(
        target_word_count=row.get("target_word_count") or 1500,
        required_sections=row.get("required_sections") or [],
        semantic_keywords=row.get("semantic_keywords") or [],
    )
    return ContentBrief(
        id=row["id"],
        client_id=row["client_id"],
        title=row["title"],
        target_keyword=row["target_keyword"],
        content_type=row.get("content_type") or "blog_post",
        status=row["status"],
        priority_level=row.get("priority_level") or "medium",
        requirements=requirements,
        target_audience=row.get("target_audience"),
        unique_angle=row.get("unique_angle"),
        competitive_gap=row.get("competitive_gap"),
        authority_signals=row.get("authority_signals"),
        ai_citation_opportunity=row.get("ai_citation_opportunity"),
        approved_by=row.get("approved_by"),
        approved_at=row.get("approved_at"),
        created_at=row.get("created_at"),
    )


def _row_to_client(row: dict) -> ClientProfile:
    return ClientProfile(
        id=row["id"],
        name=row.get("name") or "",
        domain=row["domain"],
        industry=row.get("industry"),
        target_keywords=row.get("target_keywords") or [],
    )
