import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from steady.logging_config import configure_logging
from steady.routes import ai, dashboard, event, invitation, milestone, team, template, user

load_dotenv()
configure_logging()

# Create FastAPI app
app = FastAPI(title="Steady API")

origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user.router)
app.include_router(team.router)
app.include_router(invitation.router)
app.include_router(template.router)
app.include_router(event.router)
app.include_router(milestone.router)
app.include_router(dashboard.router)
app.include_router(ai.router)

@app.get("/ping")
def ping():
    return {"message": "pong"}
