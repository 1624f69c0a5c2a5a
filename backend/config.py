import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of allowed browser origins
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/click-battle')
    # Match timers (seconds)
    COUNTDOWN_SEC = int(os.environ.get('COUNTDOWN_SEC', '10'))
    MATCH_DURATION_SEC = int(os.environ.get('MATCH_DURATION_SEC', '30'))
    # How long a finished room stays visible before it is removed
    FINISHED_GRACE_SEC = int(os.environ.get('FINISHED_GRACE_SEC', '30'))
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1.0'))
    # Stakes
    STAKING_ENABLED = os.environ.get('STAKING_ENABLED', 'true').lower() in ('1', 'true', 'yes')
    FEE_FRACTION = float(os.environ.get('FEE_FRACTION', '0.05'))
    # Escrow backend: 'trusting' accepts any proof, 'solana-rpc' checks signatures
    ESCROW_BACKEND = os.environ.get('ESCROW_BACKEND', 'trusting')
    ESCROW_RPC_URL = os.environ.get('ESCROW_RPC_URL', 'https://api.devnet.solana.com')
    PAYOUT_WEBHOOK_URL = os.environ.get('PAYOUT_WEBHOOK_URL')
    ESCROW_TIMEOUT_SEC = float(os.environ.get('ESCROW_TIMEOUT_SEC', '10'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
