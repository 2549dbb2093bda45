"""Database schema initialization.

Contains all CREATE TABLE and CREATE INDEX statements for the back-office
database. Every statement is idempotent.

Called by database.init_db() at application start.
"""


def create_schema(conn, cursor):
    """Create all database tables and indexes.

    Args:
        conn: Database connection (for commit/rollback)
        cursor: Database cursor from get_cursor(conn)
    """
    # ---- Organization ----
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS departments (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            type TEXT NOT NULL DEFAULT 'other',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS teams (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            team_lead_id INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            first_name TEXT,
            last_name TEXT,
            role TEXT NOT NULL DEFAULT 'user',
            team_id INTEGER REFERENCES teams(id) ON DELETE SET NULL,
            department_id INTEGER REFERENCES departments(id) ON DELETE SET NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            position TEXT,
            phone TEXT,
            telegram_id TEXT,
            salary_wallet_address TEXT,
            salary_network TEXT,
            last_login TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_constraint WHERE conname = 'teams_team_lead_fk') THEN
                ALTER TABLE teams ADD CONSTRAINT teams_team_lead_fk
                    FOREIGN KEY (team_lead_id) REFERENCES users(id) ON DELETE SET NULL;
            END IF;
        END $$;
    ''')

    # ---- Catalog ----
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS brands (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            website TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS geos (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            country_code VARCHAR(3),
            region TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS partners (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            contact TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS bizdev_requests (
            id SERIAL PRIMARY KEY,
            title TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'new',
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # ---- Flows ----
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS flows (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            brand_id INTEGER NOT NULL REFERENCES brands(id),
            geo_id INTEGER NOT NULL REFERENCES geos(id),
            team_id INTEGER REFERENCES teams(id) ON DELETE SET NULL,
            flow_type TEXT NOT NULL DEFAULT 'cpa',
            kpi_metric TEXT NOT NULL DEFAULT 'OAS',
            kpi_target_value NUMERIC(12,2),
            spend_percentage_ranges JSONB,
            status TEXT NOT NULL DEFAULT 'pending',
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            currency TEXT NOT NULL DEFAULT 'USD',
            cpa NUMERIC(12,2) NOT NULL DEFAULT 0,
            start_date DATE,
            end_date DATE,
            conditions TEXT,
            notes TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            updated_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS flow_users (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER NOT NULL REFERENCES flows(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'active',
            notes TEXT,
            joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            UNIQUE (flow_id, user_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS flow_stats (
            id SERIAL PRIMARY KEY,
            flow_id INTEGER NOT NULL REFERENCES flows(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id),
            day SMALLINT NOT NULL CHECK (day BETWEEN 1 AND 31),
            month SMALLINT NOT NULL CHECK (month BETWEEN 1 AND 12),
            year SMALLINT NOT NULL,
            spend NUMERIC(14,2) NOT NULL DEFAULT 0,
            installs INTEGER NOT NULL DEFAULT 0,
            regs INTEGER NOT NULL DEFAULT 0,
            deps INTEGER NOT NULL DEFAULT 0,
            verified_deps INTEGER NOT NULL DEFAULT 0,
            cpa NUMERIC(12,2) NOT NULL DEFAULT 0,
            notes TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            updated_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (flow_id, user_id, day, month, year)
        )
    ''')

    cursor.execute('CREATE INDEX IF NOT EXISTS idx_flow_stats_period ON flow_stats(year, month, day)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_flow_stats_user ON flow_stats(user_id, year, month)')

    # ---- Finance ----
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS salary_templates (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            base_amount NUMERIC(12,2) NOT NULL DEFAULT 0,
            currency TEXT NOT NULL DEFAULT 'USD',
            notes TEXT,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS salaries (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id),
            month SMALLINT NOT NULL CHECK (month BETWEEN 1 AND 12),
            year SMALLINT NOT NULL,
            amount NUMERIC(12,2) NOT NULL,
            currency TEXT NOT NULL DEFAULT 'USD',
            description TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            approved_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            approved_at TIMESTAMP,
            paid_at TIMESTAMP,
            finance_manager_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            payment_network TEXT,
            payment_address TEXT,
            payment_transaction_hash TEXT,
            rejection_reason TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (user_id, month, year)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS partner_payments (
            id SERIAL PRIMARY KEY,
            partner_id INTEGER NOT NULL REFERENCES partners(id),
            amount NUMERIC(14,2) NOT NULL,
            currency TEXT NOT NULL DEFAULT 'USDT',
            payment_method TEXT,
            network TEXT,
            wallet_address TEXT,
            transaction_hash TEXT UNIQUE,
            block_number BIGINT,
            status TEXT NOT NULL DEFAULT 'pending',
            payment_date TIMESTAMP,
            confirmation_date TIMESTAMP,
            failure_reason TEXT,
            description TEXT,
            notes TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS expense_types (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            department_id INTEGER NOT NULL REFERENCES departments(id),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (name, department_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS expenses (
            id SERIAL PRIMARY KEY,
            expense_type_id INTEGER NOT NULL REFERENCES expense_types(id),
            department_id INTEGER REFERENCES departments(id),
            user_id INTEGER NOT NULL REFERENCES users(id),
            amount NUMERIC(14,2) NOT NULL,
            currency TEXT NOT NULL DEFAULT 'USD',
            network TEXT,
            wallet_address TEXT,
            transaction_hash TEXT,
            expense_date DATE NOT NULL DEFAULT CURRENT_DATE,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS investment_operations (
            id SERIAL PRIMARY KEY,
            operation_date DATE NOT NULL,
            amount NUMERIC(18,2) NOT NULL CHECK (amount > 0),
            operation_type TEXT NOT NULL,
            operator TEXT NOT NULL,
            network TEXT NOT NULL,
            token TEXT NOT NULL,
            transaction_hash TEXT NOT NULL UNIQUE,
            wallet_address TEXT NOT NULL,
            additional_fees NUMERIC(18,2) NOT NULL DEFAULT 0,
            notes TEXT,
            created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # ---- Communications ----
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS communication_contexts (
            id SERIAL PRIMARY KEY,
            context_type TEXT NOT NULL,
            context_id INTEGER NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (context_type, context_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS communications (
            id SERIAL PRIMARY KEY,
            context_id INTEGER NOT NULL REFERENCES communication_contexts(id) ON DELETE CASCADE,
            parent_id INTEGER REFERENCES communications(id) ON DELETE SET NULL,
            sender_id INTEGER NOT NULL REFERENCES users(id),
            recipient_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            message TEXT NOT NULL,
            message_type TEXT NOT NULL DEFAULT 'comment',
            is_internal BOOLEAN NOT NULL DEFAULT FALSE,
            is_urgent BOOLEAN NOT NULL DEFAULT FALSE,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            is_edited BOOLEAN NOT NULL DEFAULT FALSE,
            edited_at TIMESTAMP,
            edited_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('CREATE INDEX IF NOT EXISTS idx_communications_context ON communications(context_id, created_at)')

    conn.commit()
