import uvicorn
from explorer_api.main import create_app

# Database tables are created by the app lifespan
app = create_app()

if __name__ == "__main__":
    uvicorn.run("run:app", host="0.0.0.0", port=8000, reload=True)
