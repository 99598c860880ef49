from ..resources import (
    blp_product,
    blp_store_account,
    blp_subscription,
)


def register_routes(app, api):
    blueprints = [
        blp_product,
        blp_store_account,
        blp_subscription,
    ]

    for blueprint in blueprints:
        api.register_blueprint(blueprint)

    # Root route
    @app.route('/')
    def index():
        return {"message": "Store POS Service Online. API is healthy and ready to receive requests."}
