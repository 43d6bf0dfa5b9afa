from prometheus_client import Counter, Histogram

# Seat ledger metrics
LEDGER_OPERATIONS = Counter(
    "seat_ledger_operations_total", "Seat ledger operations by outcome", ["operation", "result"]
)
LEDGER_LATENCY = Histogram(
    "seat_ledger_operation_latency_seconds", "Latency of seat ledger operations", ["operation"]
)
LEDGER_CAS_RETRIES = Counter(
    "seat_ledger_cas_retries_total", "Seat map writes that lost a version race and were re-evaluated", ["operation"]
)
SEATS_SWEPT = Counter("seat_ledger_swept_seats_total", "Expired seat holds released by the sweeper")

# Booking metrics
BOOKINGS_CONFIRMED = Counter("seat_ledger_bookings_confirmed_total", "Bookings confirmed after payment")
BOOKINGS_CANCELLED = Counter("seat_ledger_bookings_cancelled_total", "Bookings cancelled", ["prior_status"])
REVIEWS_CREATED = Counter("seat_ledger_reviews_created_total", "Trip reviews submitted", ["rating"])
