from __future__ import annotations

from invoice_service.application.gst_validation import GstValidationService
from invoice_service.application.poller import ExtractionPoller
from invoice_service.application.qr_extraction import QrExtractionService
from invoice_service.application.submission import DocumentSubmissionService
from invoice_service.application.token_manager import TokenManager
from invoice_service.core.config import Settings
from invoice_service.domain.ports.audit_port import AuditTrailPort
from invoice_service.domain.ports.kv_port import KeyValuePort
from invoice_service.domain.ports.storage_port import StoragePort
from invoice_service.domain.ports.vendor_port import VendorDirectoryPort
from invoice_service.infrastructure.clients.gst_http import GstHttpClient
from invoice_service.infrastructure.clients.klearstack_http import KlearStackHttpClient
from invoice_service.infrastructure.clients.qr_http import QrHttpClient
from invoice_service.infrastructure.storage.minio_adapter import MinioStorageAdapter


def build_storage_adapter(s: Settings) -> MinioStorageAdapter | None:
    if not s.storage_configured:
        return None
    return MinioStorageAdapter(
        endpoint=s.S3_ENDPOINT,
        access_key=s.S3_ACCESS_KEY,
        secret_key=s.S3_SECRET_KEY.get_secret_value(),
        secure=s.S3_SECURE,
        region=s.S3_REGION,
    )


def build_klearstack_client(s: Settings) -> KlearStackHttpClient:
    return KlearStackHttpClient(
        base_url=s.KLEARSTACK_BASE_URL,
        username=s.KLEARSTACK_USERNAME,
        password=s.KLEARSTACK_PASSWORD.get_secret_value(),
        company_name=s.KLEARSTACK_COMPANY_NAME,
        document_type=s.KLEARSTACK_DOCUMENT_TYPE,
        processing_pref=s.KLEARSTACK_PROCESSING_PREF,
        timeout_seconds=s.KLEARSTACK_TIMEOUT_SECONDS,
    )


def build_submission_service(
    s: Settings,
    client: KlearStackHttpClient,
    storage: StoragePort | None,
    kv: KeyValuePort,
    audit: AuditTrailPort,
) -> DocumentSubmissionService:
    return DocumentSubmissionService(
        tokens=TokenManager(client, audit),
        client=client,
        storage=storage,
        kv=kv,
        audit=audit,
        bucket=s.S3_INVOICES_BUCKET,
    )


def build_poller(
    s: Settings,
    client: KlearStackHttpClient,
    kv: KeyValuePort,
    audit: AuditTrailPort,
) -> ExtractionPoller:
    return ExtractionPoller(
        tokens=TokenManager(client),
        client=client,
        kv=kv,
        audit=audit,
        poll_interval_ms=s.POLL_INTERVAL_MS,
        default_max_duration_ms=s.POLL_MAX_DURATION_MS,
    )


def build_gst_service(s: Settings, vendors: VendorDirectoryPort) -> GstValidationService:
    client = GstHttpClient(
        url=s.GST_API_URL,
        api_key=s.gst_api_key,
        timeout_seconds=s.GST_TIMEOUT_SECONDS,
    )
    return GstValidationService(vendors, client)


def build_qr_service(s: Settings, storage: StoragePort | None) -> QrExtractionService:
    client = QrHttpClient(
        url=s.QR_API_URL,
        token=s.QR_API_TOKEN.get_secret_value(),
        timeout_seconds=s.QR_TIMEOUT_SECONDS,
    )
    return QrExtractionService(
        client=client,
        storage=storage,
        namespace=s.S3_SIGNED_URL_NAMESPACE,
        signed_url_ttl_seconds=s.QR_SIGNED_URL_TTL_SECONDS,
        timeout_seconds=s.QR_TIMEOUT_SECONDS,
        max_retries=s.QR_MAX_RETRIES,
        backoff_ms=s.QR_BACKOFF_MS,
    )
