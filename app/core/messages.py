class ErrorMessage:
    # ---------- Auth / Access ----------
    SERVER_ERROR = "Internal server error"
    DATABASE_FAILURE = "Database operation failed"
    AUTH_CONTEXT_MISSING = "Authentication context missing"
    USER_NOT_AUTHENTICATED = "User is not authenticated"
    USER_ID_MISSING = "Authenticated user id missing"

    ADMIN_ACCESS_REQUIRED = "Admin access required"
    ACCESS_DENIED = "Access denied"

    # ---------- Refunds ----------
    PAYMENT_NOT_FOUND = "Zahlung nicht gefunden"
    PAYMENT_NOT_OWNED = "Keine Berechtigung für diese Zahlung"
    DUPLICATE_REQUEST = "Widerrufsantrag bereits gestellt (Status: {status})"
    REQUEST_NOT_FOUND = "Antrag nicht gefunden"
    ALREADY_RESOLVED = "Antrag wurde bereits bearbeitet (Status: {status})"
    REJECTION_NOTES_REQUIRED = "Bitte gib eine Begründung für die Ablehnung an"
    GATEWAY_FAILURE = "Zahlungsanbieter nicht erreichbar, bitte später erneut versuchen"
    GATEWAY_NOT_CONFIGURED = "Razorpay keys are not configured"


class RefundMessage:
    AUTO_REFUNDED = (
        "Dein Widerruf wurde automatisch verarbeitet. "
        "Die Rückerstattung erfolgt in 5-10 Werktagen."
    )
    SUBMITTED_FOR_REVIEW = (
        "Dein Widerrufsantrag wurde eingereicht und wird von unserem Team geprüft."
    )
    APPROVED = "Antrag genehmigt"
    REJECTED = "Antrag abgelehnt"
    REQUESTS_LOADED = "Anträge geladen"
    PAYMENTS_LOADED = "Zahlungen geladen"
    STATS_LOADED = "Statistik geladen"
