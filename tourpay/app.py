# module tourpay.app
from tourpay.app_setup.factory import create_app

# App globale
app = create_app()
