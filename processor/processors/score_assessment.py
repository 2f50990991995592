"""Post-submission scoring of a completed assessment."""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from processor.config import settings
from processor.integrations.claude import (
    ClaudeClient,
    ClaudeError,
    DimensionScore,
    safe_template_substitute,
)
from processor.processors.base import BaseProcessor
from processor.queue_manager import QueueManager, utcnow

FALLBACK_SCORE = 50
FALLBACK_REASONING = "Using fallback scoring due to AI unavailability"
QUADRANT_THRESHOLD = 60


@dataclass(frozen=True)
class Dimension:
    """One scored dimension: its rubric and the questions it reads."""

    key: str
    system_prompt: str
    prompt: str
    criteria: Dict[str, int]


PERSONAL_OWNERSHIP = Dimension(
    key="personal_ownership",
    system_prompt="You are an expert at assessing personal ownership and authentic passion.",
    prompt="""You are analyzing Q1 of a leadership assessment for {chapter}. Score how deeply this candidate cares about a community problem.

QUESTION: "What problem in your city bothers you the most? Tell us about the moment when you thought 'I need to fix this'."

RESPONSE: "{problem}"

Score 0-25 points for each dimension (be generous with 12-20 for reasonable effort):
1. emotional_connection: Any personal irritation = 12-15, strong emotion = 16-20, visceral passion = 21-25
2. specific_moment: Vague mention = 10-14, some detail = 15-19, vivid story = 20-25
3. personal_stakes: Some relevance = 12-16, clear personal connection = 17-21, deeply personal = 22-25
4. community_impact: Basic awareness = 12-16, clear connection = 17-21, systemic view = 22-25""",
    criteria={
        "emotional_connection": 25,
        "specific_moment": 25,
        "personal_stakes": 25,
        "community_impact": 25,
    },
)

IMPACT_READINESS = Dimension(
    key="impact_readiness",
    system_prompt="You are an expert at assessing initiative design and impact planning.",
    prompt="""You are analyzing Q2 of a leadership assessment for {chapter}. Score how ready this candidate is to create real impact.

QUESTION: "{initiative_question}"

RESPONSE: "{initiative}"

Score 0-25 points for each dimension:
1. strategic_thinking: Vague ideas = 8-12, some structure = 13-18, detailed strategy = 19-25
2. scale_planning: Can they realistically reach 10,000+ people? No scale plan = 5-10, some approach = 11-17, concrete plan = 18-25
3. resource_awareness: Do they understand the 6 months and ₹50,000 constraints? Unrealistic = 5-10, somewhat aware = 11-17, practical = 18-25
4. measurable_outcomes: Vague goals = 8-12, some clarity = 13-18, specific metrics = 19-25""",
    criteria={
        "strategic_thinking": 25,
        "scale_planning": 25,
        "resource_awareness": 25,
        "measurable_outcomes": 25,
    },
)

WILL = Dimension(
    key="will",
    system_prompt="You are an expert at assessing commitment and reliability.",
    prompt="""You are analyzing Q3 of a leadership assessment for {chapter}. Score the candidate's commitment and willingness to show up when needed.

QUESTION: "{saturday_question}"

RESPONSE: "{saturday}"

Score 0-25 points for each dimension (value HONESTY over "perfect" answers):
1. immediate_response: Clear no = 5-10, maybe/conditional = 11-17, immediate yes = 18-25
2. sacrifice_willingness: Not willing = 5-10, reluctant but willing = 11-17, eager = 18-25
3. problem_solving: No alternatives = 8-12, some solutions = 13-18, proactive = 19-25
4. reliability: Unreliable = 5-10, situational = 11-17, dependable = 18-25

"No, but here's why" shows self-awareness and is better than fake enthusiasm.""",
    criteria={
        "immediate_response": 25,
        "sacrifice_willingness": 25,
        "problem_solving": 25,
        "reliability": 25,
    },
)

SKILL = Dimension(
    key="skill",
    system_prompt="You are an expert at assessing execution capability and leadership potential.",
    prompt="""You are analyzing Q4 and Q5 of a leadership assessment for {chapter}. Score the candidate's goal-setting capability and leadership style.

Q4: "{goal_question}"
RESPONSE: "{goal}"

Q5: "Your team misses an important deadline. What do you do first?"
RESPONSE: {style}

Score these dimensions:
1. goal_clarity (0-30): Vague aspirations = 10-15, some specificity = 16-23, crystal clear goal = 24-30
2. realistic_ambition (0-30): Too easy/unrealistic = 10-15, balanced = 16-23, perfectly ambitious = 24-30
3. challenge_anticipation (0-20): No obstacles mentioned = 5-10, some awareness = 11-15, thorough understanding = 16-20
4. leadership_approach (0-20): Poor fit = 5-10, okay fit = 11-15, strong fit = 16-20

Leadership style meanings:
- leader: Takes ownership, rallies team
- doer: Gets hands dirty, delivers
- learning: Reflects, improves process
- strategic: Assesses impact, prioritizes""",
    criteria={
        "goal_clarity": 30,
        "realistic_ambition": 30,
        "challenge_anticipation": 20,
        "leadership_approach": 20,
    },
)

DIMENSIONS = (PERSONAL_OWNERSHIP, IMPACT_READINESS, WILL, SKILL)


@dataclass(frozen=True)
class RoleRecommendation:
    role: str
    explanation: str


def recommend_role(po: int, ir: int, will: int, skill: int) -> RoleRecommendation:
    """Map the four dimension scores to a role; the first matching tier wins."""
    scores = (
        f"Personal Ownership ({po}), Impact Readiness ({ir}), "
        f"Commitment ({will}), Execution ({skill})"
    )
    if po >= 70 and ir >= 60 and will >= 65 and skill >= 60:
        return RoleRecommendation(
            "Chair / Co-Chair",
            f"Strong across all dimensions: {scores}. Ready for top leadership roles.",
        )
    if po >= 60 and ir >= 50 and will >= 55 and skill >= 50:
        return RoleRecommendation(
            "Vertical Lead",
            f"Solid performance across dimensions: {scores}. Well-suited to lead a specific vertical.",
        )
    if po >= 50 and ir >= 40 and will >= 50 and skill >= 45:
        return RoleRecommendation(
            "EC Member",
            f"Good baseline in all areas: {scores}. Ready to contribute as an EC member.",
        )
    if po >= 40 and (ir >= 70 or skill >= 70) and will >= 40:
        area = "Impact Planning" if ir >= 70 else "Execution"
        return RoleRecommendation(
            "Advisor / Specialist",
            f"Exceptional in a specific area ({area}). {scores}. Best suited for a specialized advisory role.",
        )
    return RoleRecommendation(
        "Needs Development",
        f"Current scores: {scores}. Consider building experience before taking on EC responsibilities.",
    )


def assign_quadrant(will: int, skill: int) -> str:
    """WILL/SKILL quadrant: Q1 leader, Q2 enthusiast, Q3 specialist, Q4 developing."""
    if will >= QUADRANT_THRESHOLD and skill >= QUADRANT_THRESHOLD:
        return "Q1"
    if will >= QUADRANT_THRESHOLD:
        return "Q2"
    if skill >= QUADRANT_THRESHOLD:
        return "Q3"
    return "Q4"


class ScoreAssessmentProcessor(BaseProcessor):
    """Scores a completed assessment and stores one result row for it."""

    job_type = "score_assessment"

    def __init__(self, db: Session, queue: QueueManager, claude: Optional[ClaudeClient] = None):
        super().__init__(db, queue)
        self.claude = claude or ClaudeClient()

    async def process(
        self,
        assessment_id: Optional[int] = None,
        payload: Optional[dict] = None,
    ) -> None:
        assessment_id = (payload or {}).get("assessment_id", assessment_id)
        if not assessment_id:
            raise ValueError("assessment_id is required")

        assessment = self.db.execute(
            text("""
                SELECT a.id, a.status, c.name AS chapter_name
                FROM assessments a
                JOIN chapters c ON c.id = a.chapter_id
                WHERE a.id = :assessment_id
            """),
            {"assessment_id": assessment_id},
        ).fetchone()

        if not assessment:
            raise ValueError(f"Assessment {assessment_id} not found")

        if assessment.status != "completed":
            self.logger.warning(
                "Assessment not completed, skipping scoring",
                assessment_id=assessment_id,
                status=assessment.status,
            )
            return

        responses = self._load_responses(assessment_id)
        missing = [n for n in range(1, 6) if n not in responses]
        if missing:
            raise ValueError(f"Assessment {assessment_id} is missing responses {missing}")

        self.logger.info("Scoring assessment", assessment_id=assessment_id)

        q1 = responses[1]["answer"]
        values = {
            "chapter": assessment.chapter_name,
            "problem": q1.get("problemText", ""),
            "initiative_question": responses[2]["question"],
            "initiative": responses[2]["answer"].get("text", ""),
            "saturday_question": responses[3]["question"],
            "saturday": responses[3]["answer"].get("text", ""),
            "goal_question": responses[4]["question"],
            "goal": responses[4]["answer"].get("text", ""),
            "style": responses[5]["answer"].get("choice") or "",
        }

        breakdown = {}
        totals = {}
        for dimension in DIMENSIONS:
            score = await self._score(dimension, values, assessment_id)
            totals[dimension.key] = score.total if score else FALLBACK_SCORE
            breakdown[dimension.key] = (
                {**score.scores, "reasoning": score.reasoning}
                if score
                else {"reasoning": FALLBACK_REASONING, "fallback": True}
            )

        po = totals["personal_ownership"]
        ir = totals["impact_readiness"]
        will = totals["will"]
        skill = totals["skill"]
        role = recommend_role(po, ir, will, skill)

        result = {
            "assessment_id": assessment_id,
            "personal_ownership_score": po,
            "impact_readiness_score": ir,
            "will_score": will,
            "skill_score": skill,
            "quadrant": assign_quadrant(will, skill),
            "recommended_role": role.role,
            "role_explanation": role.explanation,
            "vertical_matches": json.dumps(list(q1.get("priorities") or [])[:3]),
            "leadership_style": values["style"] or None,
            "scoring_breakdown": json.dumps(breakdown, ensure_ascii=False),
            "model_version": self.claude.model,
        }
        self._store_result(result)

        self.logger.info(
            "Assessment scored",
            assessment_id=assessment_id,
            quadrant=result["quadrant"],
            recommended_role=role.role,
        )

    async def _score(self, dimension: Dimension, values: dict, assessment_id: int) -> Optional[DimensionScore]:
        prompt = safe_template_substitute(dimension.prompt, **values)
        try:
            return await self.claude.score_dimension(
                dimension.system_prompt,
                prompt,
                dimension.criteria,
                temperature=settings.SCORING_TEMPERATURE,
            )
        except ClaudeError as e:
            self.logger.warning(
                "Dimension scoring failed, using fallback",
                assessment_id=assessment_id,
                dimension=dimension.key,
                error=str(e),
            )
            return None

    def _load_responses(self, assessment_id: int) -> Dict[int, dict]:
        rows = self.db.execute(
            text("""
                SELECT question_number, question_text, adapted_question_text, response_data
                FROM assessment_responses
                WHERE assessment_id = :assessment_id
                ORDER BY question_number
            """),
            {"assessment_id": assessment_id},
        ).fetchall()

        responses: Dict[int, dict] = {}
        for row in rows:
            if not row.response_data:
                continue
            responses[row.question_number] = {
                "question": row.adapted_question_text or row.question_text or "",
                "answer": json.loads(row.response_data),
            }
        return responses

    def _store_result(self, result: dict) -> None:
        """Upsert the single result row for the assessment."""
        columns: List[str] = [name for name in result if name != "assessment_id"]
        assignments = ", ".join(f"{name} = :{name}" for name in columns)

        updated = self.db.execute(
            text(f"UPDATE assessment_results SET {assignments} WHERE assessment_id = :assessment_id"),
            result,
        )
        if updated.rowcount == 0:
            query = text(f"""
                INSERT INTO assessment_results (assessment_id, {", ".join(columns)}, created_at)
                VALUES (:assessment_id, {", ".join(f":{name}" for name in columns)}, :created_at)
            """).bindparams(bindparam("created_at", type_=DateTime()))
            self.db.execute(query, {**result, "created_at": utcnow()})
        self.db.commit()
