from prometheus_client import Counter

# Service Metrics
ota_firmware_downloads_total = Counter(
    "ota_firmware_downloads_total",
    "Total firmware images served",
    ["source"]  # Labels: 'stub', 'file'
)

ota_health_checks_total = Counter(
    "ota_health_checks_total",
    "Total health checks answered"
)
