# Route modules: each exposes an APIRouter mounted by create_app()
