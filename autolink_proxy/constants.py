"""Launch options, identity-provider URLs, CSS selectors and timeouts."""

# ── Browser launch ───────────────────────────────────────────────────────────

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1200, "height": 800}

SUPPORTED_ENGINES = ("chromium", "camoufox")

# ── Timeouts (ms) ────────────────────────────────────────────────────────────

LAUNCH_TIMEOUT_MS = 60_000
NAVIGATION_TIMEOUT_MS = 30_000
ELEMENT_TIMEOUT_MS = 15_000
CLICK_TIMEOUT_MS = 5_000
POST_SUBMIT_TIMEOUT_MS = 15_000

# Seconds, for httpx
FILE_FETCH_TIMEOUT = 60.0

# ── Identity provider (Google accounts) ──────────────────────────────────────

ACCOUNT_STATUS_URL = "https://myaccount.google.com/"
SIGN_IN_URL = "https://accounts.google.com/signin/v2/identifier?hl=en&flowName=GlifWebSignIn"

SIGN_IN_HOSTS = {"accounts.google.com"}
SIGN_IN_PATH_MARKERS = ["/signin", "servicelogin", "/v3/signin"]

SELECTORS = {
    "identifier": 'input[type="email"]',
    "identifier_next": "#identifierNext",
    "password": 'input[type="password"]',
    "password_next": "#passwordNext",
}

# ── Verification / CAPTCHA detection ─────────────────────────────────────────

VERIFICATION_MARKERS = ["verify", "2-step", "challenge", "captcha"]

CAPTCHA_SELECTORS = [
    ("iframe[src*='recaptcha']", "recaptcha"),
    ("iframe[src*='hcaptcha']", "hcaptcha"),
    ("#cf-turnstile", "cloudflare_turnstile"),
    ("#captchaimg", "image_captcha"),
]
