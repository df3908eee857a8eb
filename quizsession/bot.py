import discord
from discord.ext import commands
import logging
import asyncio
from typing import Dict, Optional, Set
import os

from .data_manager import DataManager
from .config_manager import ConfigManager
from .models import AnswerFeedback, Question, QuestionType, QuizSession, ScoreSummary, SessionState
from .progress_sink import JsonlProgressSink, ProgressDispatcher
from .quiz_controller import QuizController, QuizControllerError, QuizNotFoundError
from .quiz_engine import format_duration

logger = logging.getLogger(__name__)

COLOR_OK = 0x00ff00
COLOR_WARN = 0xffaa00
COLOR_ERROR = 0xff0000
COLOR_INFO = 0x6699ff

NEXT_LABEL = "Next ➜"
FINISH_LABEL = "Finish ✅"
REVIEW_MAX_ITEMS = 10


def build_question_embed(session: QuizSession, question: Question) -> discord.Embed:
    """Embed for the session's current question."""
    embed = discord.Embed(
        title=f"🎯 Question {session.current_index + 1}/{len(session.questions)}",
        description=question.text,
        color=COLOR_OK
    )
    if question.question_type == QuestionType.SHORT_ANSWER:
        embed.add_field(name="✍️ Answer", value="Reply with `/answer <text>`", inline=False)
    else:
        options = "\n".join(f"**{i + 1}.** {option.text}" for i, option in enumerate(question.options))
        embed.add_field(name="Options", value=options or "-", inline=False)

    embed.add_field(name="📚 Quiz", value=session.quiz.title, inline=True)
    embed.add_field(name="🏅 Points", value=str(question.points), inline=True)
    if session.is_timed:
        embed.add_field(name="⏱️ Time Remaining", value=format_duration(session.remaining_time) or "0:00", inline=True)
    if question.image:
        embed.set_image(url=question.image)
    return embed


def build_feedback_embed(feedback: AnswerFeedback) -> discord.Embed:
    """Embed shown right after an answer is graded."""
    record = feedback.record
    if record.is_correct:
        embed = discord.Embed(title="✅ Correct!", description=f"+{record.points_earned} points", color=COLOR_OK)
    else:
        embed = discord.Embed(title="❌ Incorrect", color=COLOR_ERROR)
        if feedback.correct_answer:
            embed.add_field(name="Correct Answer", value=f"**{feedback.correct_answer}**", inline=False)
    if feedback.explanation:
        embed.add_field(name="💡 Explanation", value=feedback.explanation, inline=False)
    embed.set_footer(text="Press Finish to see your results" if feedback.is_last_question else "Press Next to continue")
    return embed


def build_results_embed(session: QuizSession, summary: ScoreSummary, review: Optional[list] = None) -> discord.Embed:
    """Embed summarizing a completed session."""
    embed = discord.Embed(
        title="🎉 Quiz Complete!" if summary.passed else "📝 Quiz Complete",
        description=f"**{session.quiz.title}**",
        color=COLOR_OK if summary.passed else COLOR_WARN
    )
    embed.add_field(
        name="📊 Score",
        value=(
            f"{summary.earned_points}/{summary.total_points} points ({summary.percentage}%)\n"
            f"{'✅ Passed' if summary.passed else '❌ Not passed'} (pass score {session.quiz.pass_score}%)"
        ),
        inline=False
    )
    embed.add_field(
        name="📈 Answers",
        value=f"Correct: {summary.correct_count}\nWrong: {summary.wrong_count}",
        inline=True
    )
    if summary.time_spent is not None:
        embed.add_field(name="⏱️ Time", value=format_duration(summary.time_spent) or "0:00", inline=True)

    if review:
        lines = []
        for entry in review[:REVIEW_MAX_ITEMS]:
            mark = "✅" if entry.record and entry.record.is_correct else "❌"
            lines.append(f"{mark} {entry.index + 1}. {entry.question.text[:80]} ({entry.points_earned}/{entry.points_possible})")
        if len(review) > REVIEW_MAX_ITEMS:
            lines.append(f"... and {len(review) - REVIEW_MAX_ITEMS} more")
        embed.add_field(name="🔍 Review", value="\n".join(lines)[:1024], inline=False)

    embed.set_footer(text="Use /restart to play again or /quiz to pick another quiz")
    return embed


class OptionButton(discord.ui.Button):
    def __init__(self, label: str, option_id: str):
        super().__init__(label=label[:80], style=discord.ButtonStyle.secondary)
        self.option_id = option_id

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_option_pick(interaction, self.view, self.option_id)


class NextButton(discord.ui.Button):
    def __init__(self, is_last_question: bool):
        super().__init__(
            label=FINISH_LABEL if is_last_question else NEXT_LABEL,
            style=discord.ButtonStyle.primary,
            disabled=True
        )

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_next(interaction, self.view)


class QuestionView(discord.ui.View):
    """
    Buttons for one question.

    Choice questions get one button per option. Next stays disabled until the
    question has an answer and becomes Finish on the last question.
    """

    def __init__(self, bot: "QuizBot", session: QuizSession, question: Question):
        super().__init__(timeout=None)
        self.bot = bot
        self.channel_id = session.channel_id
        self.session_id = session.session_id
        self.question_index = session.current_index

        if question.question_type != QuestionType.SHORT_ANSWER:
            for option in question.options:
                self.add_item(OptionButton(option.text, option.id))

        self.next_button = NextButton(session.current_index == len(session.questions) - 1)
        self.add_item(self.next_button)

    def is_current(self, session: Optional[QuizSession]) -> bool:
        return (
            session is not None and
            session.state == SessionState.ACTIVE and
            session.session_id == self.session_id and
            session.current_index == self.question_index
        )

    def mark_answered(self) -> None:
        for item in self.children:
            if isinstance(item, OptionButton):
                item.disabled = True
        self.next_button.disabled = False


class QuizBot(commands.Bot):
    """Discord bot for running timed quizzes, one session per channel"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.progress: Optional[ProgressDispatcher] = None
        self.quiz_controller: Optional[QuizController] = None

        # Channel ID -> message showing the current question
        self._question_messages: Dict[int, discord.Message] = {}
        self._question_views: Dict[int, QuestionView] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")
            self.build_components()
            await self.load_quiz_data()
            await self.setup_commands()
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def build_components(self) -> None:
        """Create managers and the controller from the loaded configuration."""
        self.config_manager = ConfigManager()
        if self.app_config:
            config_errors = self.config_manager.apply_config(self.app_config)
            for error in config_errors:
                logger.warning(f"Configuration value ignored: {error}")

        settings = self.config_manager.get_quiz_settings()
        self.data_manager = DataManager(
            self.config_manager.get_quiz_directory(),
            default_pass_score=settings.default_pass_score
        )
        self.progress = ProgressDispatcher(JsonlProgressSink(self.config_manager.get_progress_log_path()))
        self.quiz_controller = QuizController(
            self.data_manager,
            self.config_manager,
            progress=self.progress,
            on_session_completed=self.on_session_completed,
            on_timer_tick=self.on_timer_tick
        )

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List available quizzes")
        async def quizzes_command(
            interaction: discord.Interaction,
            category: Optional[str] = None,
            difficulty: Optional[str] = None,
            search: Optional[str] = None
        ):
            await self.handle_quizzes(interaction, category, difficulty, search)

        @self.tree.command(name="quiz", description="Start a quiz in this channel")
        async def quiz_command(interaction: discord.Interaction, slug: str, count: Optional[int] = None):
            await self.handle_quiz(interaction, slug, count)

        @self.tree.command(name="answer", description="Answer the current short answer question")
        async def answer_command(interaction: discord.Interaction, text: str):
            await self.handle_answer(interaction, text)

        @self.tree.command(name="status", description="Show current quiz status and progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="restart", description="Play the current quiz again with new questions")
        async def restart_command(interaction: discord.Interaction, count: Optional[int] = None):
            await self.handle_restart(interaction, count)

        @self.tree.command(name="stop", description="Stop the current quiz session")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="set_questions", description="Set the default number of questions per quiz")
        async def set_questions_command(interaction: discord.Interaction, number: Optional[int] = None):
            await self.handle_set_questions(interaction, number)

        @self.tree.command(name="toggle_timer", description="Turn quiz time limits on or off")
        async def toggle_timer_command(interaction: discord.Interaction):
            await self.handle_toggle_timer(interaction)

        logger.info("Slash commands registered successfully")

    async def load_quiz_data(self):
        """Load quiz files from the quizzes directory"""
        loaded_quizzes = self.data_manager.load_quiz_files()
        logger.info(f"Loaded {len(loaded_quizzes)} quizzes from {self.data_manager.quiz_directory}")
        for error in self.data_manager.get_load_errors():
            logger.warning(f"Quiz loading problem: {error}")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.progress is not None:
            await self.progress.drain()
        await super().close()

    # ------------------------------------------------------------------
    # Controller listeners
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping Discord update")
            coro.close()
            return
        task = loop.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def on_timer_tick(self, session: QuizSession, remaining: int) -> None:
        """Refresh the countdown shown on the question message."""
        # Edits are rate limited, refresh every 10 seconds and for the final 5
        if remaining % 10 == 0 or remaining <= 5:
            self._spawn(self._refresh_question_message(session.channel_id))

    def on_session_completed(self, session: QuizSession, summary: ScoreSummary) -> None:
        """Post the results once a session completes, by answers or by time."""
        channel_id = session.channel_id
        message = self._question_messages.pop(channel_id, None)
        self._question_views.pop(channel_id, None)
        review = self.quiz_controller.get_review(channel_id) if session.quiz.allow_review else None
        embed = build_results_embed(session, summary, review)
        if session.remaining_time == 0 and session.is_timed:
            embed.add_field(name="⏰ Time's Up!", value="The quiz ended when the time ran out.", inline=False)
        self._spawn(self._announce_results(channel_id, embed, message))

    async def _refresh_question_message(self, channel_id: int) -> None:
        message = self._question_messages.get(channel_id)
        session = self.quiz_controller.get_session(channel_id)
        question = self.quiz_controller.get_current_question(channel_id)
        if message is None or question is None:
            return
        try:
            await message.edit(embed=build_question_embed(session, question))
        except discord.HTTPException as e:
            logger.error(f"Failed to update timer message for channel {channel_id}: {e}")

    async def _announce_results(self, channel_id: int, embed: discord.Embed, message: Optional[discord.Message]) -> None:
        try:
            if message is not None:
                await message.edit(view=None)
            channel = self.get_channel(channel_id)
            if channel is None:
                logger.warning(f"Channel {channel_id} not found, results not posted")
                return
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Failed to post results for channel {channel_id}: {e}")

    async def _present_current_question(self, interaction: discord.Interaction, session: QuizSession) -> None:
        question = self.quiz_controller.get_current_question(session.channel_id)
        view = QuestionView(self, session, question)
        embed = build_question_embed(session, question)

        if interaction.response.is_done():
            message = await interaction.followup.send(embed=embed, view=view, wait=True)
        else:
            await interaction.response.send_message(embed=embed, view=view)
            message = await interaction.original_response()

        self._question_messages[session.channel_id] = message
        self._question_views[session.channel_id] = view

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Quiz Bot Commands",
                description="Available commands for finding and playing quizzes",
                color=COLOR_OK
            )
            help_embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/quizzes [category] [difficulty] [search]` - List available quizzes\n"
                    "`/quiz <slug> [count]` - Start a quiz in this channel\n"
                    "`/answer <text>` - Answer a short answer question\n"
                    "`/status` - Show progress and remaining time\n"
                    "`/restart [count]` - Play the same quiz again\n"
                    "`/stop` - Stop the current quiz"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/set_questions [number]` - Default number of questions, empty for all\n"
                    "`/toggle_timer` - Turn time limits on or off"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            help_embed.set_footer(text="Use slash commands to interact with the bot")
            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_quizzes(
        self,
        interaction: discord.Interaction,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        search: Optional[str] = None
    ):
        """Handle /quizzes command"""
        try:
            quizzes = self.data_manager.list_quizzes(category=category, difficulty=difficulty, search=search)
            if not quizzes:
                loading_summary = self.data_manager.get_loading_summary()
                message = "No quizzes match your filters."
                if loading_summary['has_errors']:
                    message += "\n```\n" + "\n".join(loading_summary['errors'][:3]) + "\n```"
                await self.send_info_response(interaction, message, "📚 No Quizzes")
                return

            embed = discord.Embed(title="📚 Available Quizzes", color=COLOR_INFO)
            for quiz in quizzes[:25]:
                details = [f"`/quiz {quiz.slug}`", f"{quiz.total_question_count} questions"]
                if quiz.difficulty:
                    details.append(quiz.difficulty)
                if quiz.time_limit:
                    details.append(f"⏱️ {format_duration(quiz.time_limit)}")
                if quiz.category:
                    details.append(f"{quiz.category.icon or ''} {quiz.category.name}".strip())
                value = " • ".join(details)
                if quiz.description:
                    value = f"{quiz.description[:200]}\n{value}"
                embed.add_field(name=quiz.title, value=value, inline=False)

            categories = self.data_manager.list_categories()
            if categories:
                embed.set_footer(text="Categories: " + ", ".join(category.name for category in categories))
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in quizzes command: {e}")

    async def handle_quiz(self, interaction: discord.Interaction, slug: str, count: Optional[int] = None):
        """Handle /quiz command"""
        channel_id = interaction.channel_id
        try:
            self._clear_question_message(channel_id)
            self.quiz_controller.open_quiz(channel_id, slug=slug)
            session = self.quiz_controller.start_quiz(channel_id, count)
            await self._present_current_question(interaction, session)

        except QuizNotFoundError as e:
            available = ", ".join(self.quiz_controller.get_available_quizzes()[:10]) or "none"
            await self.send_error_response(interaction, f"{e}\nAvailable quizzes: {available}", "❌ Quiz Not Found")
        except ValueError as e:
            session = self.quiz_controller.get_session(channel_id)
            options = self.quiz_controller.get_question_count_options(channel_id) if session else []
            message = str(e)
            if options:
                message += f"\nPossible counts: {', '.join(str(option) for option in options)}"
            await self.send_error_response(interaction, message, "❌ Invalid Question Count")
        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e), "❌ Quiz Start Failed")
        except discord.HTTPException as e:
            logger.error(f"Discord API error starting quiz in channel {channel_id}: {e}")

    async def handle_answer(self, interaction: discord.Interaction, text: str):
        """Handle /answer command"""
        channel_id = interaction.channel_id
        try:
            question = self.quiz_controller.get_current_question(channel_id)
            if question is None:
                await self.send_info_response(interaction, "No question is waiting for an answer in this channel.")
                return
            if question.question_type != QuestionType.SHORT_ANSWER:
                await self.send_info_response(interaction, "Pick one of the option buttons to answer this question.")
                return

            feedback = self.quiz_controller.submit_answer(channel_id, text)
            await self._send_feedback(interaction, channel_id, feedback)

        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e))
        except discord.HTTPException as e:
            logger.error(f"Discord API error submitting answer in channel {channel_id}: {e}")

    async def handle_option_pick(self, interaction: discord.Interaction, view: QuestionView, option_id: str):
        """Handle a click on an option button"""
        channel_id = view.channel_id
        try:
            if not view.is_current(self.quiz_controller.get_session(channel_id)):
                await self.send_info_response(interaction, "This question is no longer active.")
                return

            feedback = self.quiz_controller.submit_answer(channel_id, option_id)
            await self._send_feedback(interaction, channel_id, feedback)

        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e))
        except discord.HTTPException as e:
            logger.error(f"Discord API error handling option pick in channel {channel_id}: {e}")

    async def _send_feedback(self, interaction: discord.Interaction, channel_id: int, feedback: AnswerFeedback):
        if not feedback.accepted:
            message = (
                "This question has already been answered."
                if feedback.record is not None
                else "Please type an answer."
            )
            await self.send_info_response(interaction, message)
            return

        await interaction.response.send_message(embed=build_feedback_embed(feedback))

        view = self._question_views.get(channel_id)
        message = self._question_messages.get(channel_id)
        if view is not None and message is not None:
            view.mark_answered()
            await message.edit(view=view)

    async def handle_next(self, interaction: discord.Interaction, view: QuestionView):
        """Handle a click on the Next / Finish button"""
        channel_id = view.channel_id
        try:
            if not view.is_current(self.quiz_controller.get_session(channel_id)):
                await self.send_info_response(interaction, "This question is no longer active.")
                return

            state = self.quiz_controller.advance_question(channel_id)
            if state == SessionState.COMPLETED:
                # Results are posted by the completion listener
                await interaction.response.edit_message(view=None)
                return

            await interaction.response.edit_message(view=None)
            await self._present_current_question(interaction, self.quiz_controller.get_session(channel_id))

        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e))
        except discord.HTTPException as e:
            logger.error(f"Discord API error advancing question in channel {channel_id}: {e}")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        channel_id = interaction.channel_id
        try:
            progress = self.quiz_controller.get_session_progress(channel_id)
            if progress is None:
                await self.send_info_response(interaction, "No quiz in this channel. Use `/quizzes` to find one.")
                return

            embed = discord.Embed(title="📊 Quiz Status", description=f"**{progress['quiz_title']}**", color=COLOR_INFO)
            embed.add_field(name="State", value=progress['state'].capitalize(), inline=True)

            if progress['state'] == SessionState.SETUP.value:
                options = self.quiz_controller.get_question_count_options(channel_id)
                embed.add_field(
                    name="Question counts",
                    value=", ".join(str(option) for option in options) or "-",
                    inline=True
                )
            else:
                summary = self.quiz_controller.get_summary(channel_id)
                embed.add_field(
                    name="Progress",
                    value=f"Question {progress['current_question']}/{progress['total_questions']}",
                    inline=True
                )
                embed.add_field(
                    name="Score so far",
                    value=f"{summary.earned_points}/{summary.total_points} ({summary.percentage}%)",
                    inline=True
                )
                if progress['time_budget'] is not None:
                    embed.add_field(
                        name="⏱️ Time Remaining",
                        value=f"{format_duration(progress['remaining_time']) or '0:00'} of {format_duration(progress['time_budget'])}",
                        inline=True
                    )

            await interaction.response.send_message(embed=embed)

        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e))
        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")

    async def handle_restart(self, interaction: discord.Interaction, count: Optional[int] = None):
        """Handle /restart command"""
        channel_id = interaction.channel_id
        try:
            self._clear_question_message(channel_id)
            self.quiz_controller.restart_quiz(channel_id)
            session = self.quiz_controller.start_quiz(channel_id, count)
            await self._present_current_question(interaction, session)

        except ValueError as e:
            await self.send_error_response(interaction, str(e), "❌ Invalid Question Count")
        except QuizControllerError as e:
            await self.send_error_response(interaction, str(e), "❌ Restart Failed")
        except discord.HTTPException as e:
            logger.error(f"Discord API error restarting quiz in channel {channel_id}: {e}")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        channel_id = interaction.channel_id
        try:
            self._clear_question_message(channel_id)
            if self.quiz_controller.stop_session(channel_id):
                await interaction.response.send_message(embed=discord.Embed(
                    title="🛑 Quiz Stopped",
                    description="The quiz session in this channel has ended.",
                    color=COLOR_WARN
                ))
            else:
                await self.send_info_response(interaction, "No active quiz found in this channel.")

        except discord.HTTPException as e:
            logger.error(f"Error in stop command: {e}")

    async def handle_set_questions(self, interaction: discord.Interaction, number: Optional[int] = None):
        """Handle /set_questions command"""
        result = self.config_manager.set_question_count(number)
        try:
            if result['success']:
                await self.send_info_response(interaction, result['user_message'], "⚙️ Settings Updated")
            else:
                await self.send_error_response(interaction, result['user_message'], "❌ Invalid Setting")
        except discord.HTTPException as e:
            logger.error(f"Error in set_questions command: {e}")

    async def handle_toggle_timer(self, interaction: discord.Interaction):
        """Handle /toggle_timer command"""
        result = self.config_manager.toggle_timer()
        try:
            if result['success']:
                await self.send_info_response(
                    interaction,
                    f"{result['user_message']}\nApplies to quizzes started from now on.",
                    "⚙️ Settings Updated"
                )
            else:
                await self.send_error_response(interaction, result['user_message'], "❌ Invalid Setting")
        except discord.HTTPException as e:
            logger.error(f"Error in toggle_timer command: {e}")

    def _clear_question_message(self, channel_id: int) -> None:
        self._question_messages.pop(channel_id, None)
        view = self._question_views.pop(channel_id, None)
        if view is not None:
            view.stop()

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=COLOR_ERROR
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=COLOR_INFO
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Discord Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
